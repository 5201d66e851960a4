"""DeliveryDispatcher — concurrent per-channel delivery with retry and isolation."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping, Sequence

import structlog

from src.channels.exceptions import ChannelNotFoundError
from src.channels.registry import ChannelRegistry
from src.channels.senders import ChannelSender
from src.core.config import DispatchConfig
from src.core.types import (
    Channel,
    ChannelType,
    DeliveryOutcome,
    DeliveryStatus,
    ErrorKind,
    NotificationEvent,
    SendResult,
)

logger = structlog.get_logger(__name__)


class DeliveryDispatcher:
    """Fans an event out to channels and returns one outcome per channel.

    - Each channel runs in its own task; one channel failing never cancels
      or delays another.
    - Channel state is read from the registry at delivery time, so a
      channel disabled after rule matching is ``skipped``.
    - Transient failures are retried with exponential backoff up to
      ``max_attempts``; permanent failures stop immediately.
    - Delivery failures are returned as outcomes, never raised.
    - Channels still running when ``timeout_secs`` elapses are reported as
      failed; their tasks are left to finish on their own and are cancelled
      by ``close()``.
    - Cancelling ``dispatch`` itself cancels and awaits every delivery task it
      started.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        senders: Mapping[ChannelType, ChannelSender],
        config: DispatchConfig | None = None,
    ) -> None:
        self._registry = registry
        self._senders: dict[ChannelType, ChannelSender] = dict(senders)
        self._config = config or DispatchConfig()
        # Tasks abandoned at the dispatch timeout.
        self._orphans: set[asyncio.Task[DeliveryOutcome]] = set()

    @property
    def config(self) -> DispatchConfig:
        return self._config

    @property
    def pending_orphans(self) -> int:
        return len(self._orphans)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after the given (1-based) failed attempt."""
        cfg = self._config
        delay = cfg.backoff_base_secs * (cfg.backoff_multiplier ** (attempt - 1))
        return min(delay, cfg.backoff_cap_secs)

    async def dispatch(
        self,
        event: NotificationEvent,
        channel_ids: Sequence[str],
    ) -> list[DeliveryOutcome]:
        if not channel_ids:
            return []

        tasks = [
            asyncio.create_task(
                self._deliver_guarded(event, channel_id),
                name=f"deliver:{event.id}:{channel_id}",
            )
            for channel_id in channel_ids
        ]
        try:
            done, pending = await asyncio.wait(tasks, timeout=self._config.timeout_secs)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("dispatch_cancelled", event_id=event.id, channels=len(tasks))
            raise

        outcomes: list[DeliveryOutcome] = []
        for channel_id, task in zip(channel_ids, tasks):
            if task in done:
                outcomes.append(task.result())
                continue
            logger.warning(
                "delivery_timeout",
                event_id=event.id,
                channel_id=channel_id,
                timeout_secs=self._config.timeout_secs,
            )
            self._orphans.add(task)
            task.add_done_callback(self._orphans.discard)
            outcomes.append(DeliveryOutcome(
                channel_id=channel_id,
                status=DeliveryStatus.FAILED,
                error=f"dispatch timed out after {self._config.timeout_secs}s",
                error_kind=ErrorKind.TIMEOUT,
            ))

        if pending:
            logger.info("dispatch_partial", event_id=event.id, pending=len(pending))
        return outcomes

    async def _deliver_guarded(
        self, event: NotificationEvent, channel_id: str,
    ) -> DeliveryOutcome:
        """Run ``_deliver`` so that an unexpected bug becomes a failed outcome."""
        try:
            return await self._deliver(event, channel_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("delivery_unexpected_error", event_id=event.id, channel_id=channel_id)
            return DeliveryOutcome(
                channel_id=channel_id,
                status=DeliveryStatus.FAILED,
                error=f"{type(exc).__name__}: {exc}",
                error_kind=ErrorKind.PERMANENT,
            )

    async def _deliver(self, event: NotificationEvent, channel_id: str) -> DeliveryOutcome:
        started = time.time()
        try:
            channel = self._registry.get(channel_id)
        except ChannelNotFoundError:
            logger.warning("delivery_skipped", channel_id=channel_id, reason="not_configured")
            return DeliveryOutcome(
                channel_id=channel_id,
                status=DeliveryStatus.SKIPPED,
                attempted_at=started,
                note="channel not configured",
            )

        if not channel.enabled:
            logger.info("delivery_skipped", channel_id=channel_id, reason="disabled")
            return DeliveryOutcome(
                channel_id=channel_id,
                status=DeliveryStatus.SKIPPED,
                attempted_at=started,
                note="channel disabled",
            )

        sender = self._senders.get(channel.type)
        if sender is None:
            return DeliveryOutcome(
                channel_id=channel_id,
                status=DeliveryStatus.FAILED,
                error=f"no sender for channel type {channel.type.value}",
                error_kind=ErrorKind.PERMANENT,
                attempted_at=started,
            )

        max_attempts = max(1, self._config.max_attempts)
        result = SendResult.permanent("not attempted")
        attempt = 0
        while attempt < max_attempts:
            attempt += 1
            result = await self._attempt(sender, channel, event)
            if result.ok:
                logger.info(
                    "delivery_succeeded",
                    event_id=event.id,
                    channel_id=channel_id,
                    attempts=attempt,
                )
                return DeliveryOutcome(
                    channel_id=channel_id,
                    status=DeliveryStatus.DELIVERED,
                    attempts=attempt,
                    attempted_at=started,
                )
            if not result.retryable or attempt >= max_attempts:
                break
            delay = self.backoff_delay(attempt)
            logger.warning(
                "delivery_retry",
                event_id=event.id,
                channel_id=channel_id,
                attempt=attempt,
                delay_secs=delay,
                error=result.error,
            )
            await asyncio.sleep(delay)

        logger.error(
            "delivery_failed",
            event_id=event.id,
            channel_id=channel_id,
            attempts=attempt,
            kind=result.kind,
            error=result.error,
        )
        return DeliveryOutcome(
            channel_id=channel_id,
            status=DeliveryStatus.FAILED,
            error=result.error or "delivery failed",
            error_kind=result.kind or ErrorKind.PERMANENT,
            attempts=attempt,
            attempted_at=started,
        )

    async def _attempt(
        self, sender: ChannelSender, channel: Channel, event: NotificationEvent,
    ) -> SendResult:
        """One bounded send attempt; timeouts count as transient."""
        try:
            return await asyncio.wait_for(
                sender.send(channel, event),
                timeout=self._config.send_timeout_secs,
            )
        except asyncio.TimeoutError:
            return SendResult.transient(
                f"send timed out after {self._config.send_timeout_secs}s",
            )

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for task in list(self._orphans):
            task.cancel()
        if self._orphans:
            await asyncio.gather(*self._orphans, return_exceptions=True)
        self._orphans.clear()
        for sender in self._senders.values():
            try:
                await sender.close()
            except Exception:
                logger.exception("sender_close_error", sender=type(sender).__name__)
