"""Gmail adapter: implements MailPort for the Gmail API.

Reads the inbox into EmailThread records (priority resolved through the
priority classifier) and sends plain-text mail. Google client calls are
blocking, so each one runs in a worker thread under the upstream deadline.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import re
from datetime import datetime, timezone
from email.mime.text import MIMEText
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING

from exec_brief.core.deadline import UpstreamTimeoutError, with_deadline
from exec_brief.data.models import EmailThread
from exec_brief.integrations.google_auth import build_service
from exec_brief.ports.mail_port import MailError

if TYPE_CHECKING:
    from exec_brief.core.priority import PriorityClassifier
    from exec_brief.core.token_store import TokenStore

logger = logging.getLogger(__name__)

_SENDER_RE = re.compile(r"^(.*?)\s*<(.+?)>$")
_HIDDEN_LABELS = {"UNREAD", "INBOX", "CATEGORY_PERSONAL"}


def parse_sender(from_header: str) -> tuple[str, str]:
    """Split 'Name <addr>' into (name, addr).

    Without an angle-bracket address both parts are the raw header.
    """
    match = _SENDER_RE.match(from_header.strip())
    if not match:
        return from_header, from_header
    name = match.group(1).strip().strip('"').strip()
    return name, match.group(2).strip()


def _header(headers: list[dict], name: str) -> str | None:
    for h in headers:
        if (h.get("name") or "").lower() == name:
            return h.get("value")
    return None


def _parse_date(value: str | None) -> datetime:
    if value:
        try:
            parsed = parsedate_to_datetime(value)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        except (TypeError, ValueError):
            logger.debug("Unparseable Date header: %r", value)
    return datetime.now(timezone.utc)


class GmailAdapter:
    """Gmail implementation of MailPort."""

    def __init__(
        self,
        token_store: TokenStore,
        classifier: PriorityClassifier | None = None,
    ) -> None:
        self._tokens = token_store
        self._classifier = classifier

    async def _service(self):
        access_token = await self._tokens.get_valid_access_token("google")
        return build_service("gmail", "v1", access_token)

    async def _execute(self, request, action: str) -> dict:
        try:
            return await with_deadline(asyncio.to_thread(request.execute), "Gmail")
        except UpstreamTimeoutError:
            raise
        except Exception as exc:
            logger.error("Gmail %s failed: %s", action, exc)
            raise MailError(f"Failed to {action}: {exc}") from exc

    async def fetch_recent_emails(self, max_results: int = 10) -> list[EmailThread]:
        """List inbox messages and fetch each one's details, in list order."""
        service = await self._service()
        messages = service.users().messages()

        listing = await self._execute(
            messages.list(userId="me", maxResults=max_results, q="in:inbox"),
            "list inbox",
        )
        refs = listing.get("messages") or []

        threads: list[EmailThread] = []
        for ref in refs:
            detail = await self._execute(
                messages.get(userId="me", id=ref["id"], format="full"),
                f"fetch message {ref['id']}",
            )
            threads.append(await self._to_thread(detail))

        logger.info("Fetched %d inbox message(s)", len(threads))
        return threads

    async def _to_thread(self, detail: dict) -> EmailThread:
        headers = (detail.get("payload") or {}).get("headers") or []
        from_header = _header(headers, "from") or ""
        subject = _header(headers, "subject") or "No Subject"
        sender, sender_email = parse_sender(from_header)
        snippet = detail.get("snippet") or ""
        label_ids = detail.get("labelIds") or []

        priority = "normal"
        if self._classifier is not None:
            priority = await self._classifier.classify(
                detail["id"], subject, snippet, sender_email,
            )

        return EmailThread(
            id=detail["id"],
            sender=sender,
            sender_email=sender_email,
            subject=subject,
            preview=snippet,
            timestamp=_parse_date(_header(headers, "date")),
            labels=[label for label in label_ids if label not in _HIDDEN_LABELS],
            priority=priority,
            unread="UNREAD" in label_ids,
        )

    async def send_email(self, to: str, subject: str, body: str) -> None:
        """Send a plain-text email from the authorized account."""
        message = MIMEText(body, "plain", "utf-8")
        message["To"] = to
        message["Subject"] = subject
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")

        service = await self._service()
        await self._execute(
            service.users().messages().send(userId="me", body={"raw": raw}),
            f"send email to {to}",
        )
        logger.info("Email sent to %s: '%s'", to, subject)
