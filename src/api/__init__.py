"""HTTP surface and chat command agent."""

from src.api.agent import handle_prompt
from src.api.server import create_app, start_server

__all__ = [
    "create_app",
    "handle_prompt",
    "start_server",
]
