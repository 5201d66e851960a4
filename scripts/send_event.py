#!/usr/bin/env python3
"""Submit an event to a running notification service and print the outcome.

Usage::

    python scripts/send_event.py security "Secret detected" \\
        --message "AWS key committed" --resource storage.tf --severity critical

    # Raw JSON output
    python scripts/send_event.py drift "Drift on rg-prod" --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

import httpx

_STATUS_ICONS = {"delivered": "✅", "failed": "❌", "skipped": "⚪"}


def build_payload(args: argparse.Namespace) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "type": args.type,
        "title": args.title,
        "message": args.message or args.title,
    }
    if args.severity:
        payload["severity"] = args.severity
    if args.resource:
        payload["resource"] = args.resource
    if args.environment:
        payload["environment"] = args.environment
    return payload


def render_record(record: dict[str, Any]) -> str:
    event = record["event"]
    lines = [
        f"Event #{event['id']} [{event['type']}/{event['severity']}] {event['title']}",
    ]
    outcomes = record.get("outcomes", [])
    if not outcomes:
        lines.append("  (no routing rules matched)")
    for o in outcomes:
        icon = _STATUS_ICONS.get(o["status"], "?")
        detail = o.get("error") or o.get("note") or ""
        suffix = f": {detail}" if detail else ""
        lines.append(f"  {icon} {o['channel_id']:<20s} {o['status']}{suffix}")
    return "\n".join(lines)


async def send(args: argparse.Namespace) -> int:
    url = args.url.rstrip("/") + "/notify"
    async with httpx.AsyncClient(timeout=httpx.Timeout(args.timeout)) as client:
        try:
            resp = await client.post(url, json=build_payload(args))
        except httpx.HTTPError as exc:
            print(f"Request failed: {exc}", file=sys.stderr)
            return 2

    try:
        body = resp.json()
    except ValueError:
        print(f"HTTP {resp.status_code}: {resp.text}", file=sys.stderr)
        return 1
    if resp.status_code != 200:
        print(f"HTTP {resp.status_code}: {json.dumps(body, indent=2)}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(body, indent=2))
    else:
        print(render_record(body))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Submit an IaC notification event.")
    parser.add_argument("type", help="deployment, drift, policy, security or cost")
    parser.add_argument("title", help="Short event title")
    parser.add_argument("--message", default="", help="Event body (defaults to title)")
    parser.add_argument("--severity", default="", help="info, warning, error or critical")
    parser.add_argument("--resource", default="", help="Affected resource reference")
    parser.add_argument("--environment", default="", help="Target environment")
    parser.add_argument("--url", default="http://localhost:8089", help="Service base URL")
    parser.add_argument("--timeout", type=float, default=60.0, help="Request timeout (s)")
    parser.add_argument("--json", action="store_true", help="Print the raw JSON record")
    args = parser.parse_args()

    sys.exit(asyncio.run(send(args)))


if __name__ == "__main__":
    main()
