"""
Executive Brief: Outbound call deadlines.

Every call to Gmail, Calendar, Trello or an LLM backend goes through
with_deadline so a hung upstream cannot hold a request open forever.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UpstreamTimeoutError(Exception):
    """Raised when an upstream call exceeds its time budget."""

    def __init__(self, upstream: str, seconds: float) -> None:
        super().__init__(f"{upstream} did not respond within {seconds:g}s")
        self.upstream = upstream
        self.seconds = seconds


async def with_deadline(
    awaitable: Awaitable[T],
    upstream: str,
    seconds: float | None = None,
) -> T:
    """Await with a time budget (UPSTREAM_TIMEOUT_SECONDS by default)."""
    if seconds is None:
        from exec_brief.config import settings
        seconds = settings.UPSTREAM_TIMEOUT_SECONDS

    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        logger.warning("%s timed out after %ss", upstream, seconds)
        raise UpstreamTimeoutError(upstream, seconds) from exc
