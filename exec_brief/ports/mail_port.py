"""Mail port: abstract interface for the inbox.

Core modules depend on this protocol, never on a specific provider.
"""

from __future__ import annotations

from typing import Protocol

from exec_brief.data.models import EmailThread


class MailError(Exception):
    """Raised when any mail provider operation fails."""


class MailPort(Protocol):
    """Abstract mail interface used by core modules."""

    async def fetch_recent_emails(self, max_results: int = 10) -> list[EmailThread]: ...

    async def send_email(self, to: str, subject: str, body: str) -> None: ...
