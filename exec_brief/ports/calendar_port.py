"""Calendar port: abstract interface for reading today's schedule.

Core modules depend on this protocol, never on a specific provider.
"""

from __future__ import annotations

from typing import Protocol

from exec_brief.data.models import CalendarEvent


class CalendarError(Exception):
    """Raised when any calendar provider operation fails."""


class CalendarPort(Protocol):
    """Abstract calendar interface used by core modules."""

    async def fetch_today_events(self) -> list[CalendarEvent]: ...
