"""
Executive Brief: Daily brief assembly.

Fans out to the inbox, the calendar and local storage at once and folds the
results into one snapshot:

- emails: priority ("high") or unread messages, at most 10
- events: everything on today's calendar
- tasks:  pending tasks, at most 5
- deals:  the 4 most recently updated deals (not only the stale ones)

Inbox and calendar failures, timeouts included, degrade to empty lists.
Storage reads are expected to succeed; their errors propagate.

This module is provider-agnostic: it depends on MailPort, CalendarPort and
TaskBoardPort, not on specific implementations.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from exec_brief.core.trello_sync import sync_trello_tasks

if TYPE_CHECKING:
    from exec_brief.data.db import DealDB, SettingsDB, TaskDB
    from exec_brief.data.models import CalendarEvent, EmailThread, User
    from exec_brief.ports.calendar_port import CalendarPort
    from exec_brief.ports.mail_port import MailPort
    from exec_brief.ports.task_board_port import TaskBoardPort

logger = logging.getLogger(__name__)

EMAIL_FETCH_LIMIT = 10
MAX_PRIORITY_EMAILS = 10
MAX_BRIEF_TASKS = 5
MAX_BRIEF_DEALS = 4


def select_priority_emails(emails: list[EmailThread]) -> list[EmailThread]:
    return [e for e in emails if e.priority == "high" or e.unread][:MAX_PRIORITY_EMAILS]


class BriefBuilder:
    """Assembles the daily brief for one user."""

    def __init__(
        self,
        mail: MailPort,
        calendar: CalendarPort,
        task_db: TaskDB,
        deal_db: DealDB,
        settings_db: SettingsDB | None = None,
        trello: TaskBoardPort | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._mail = mail
        self._calendar = calendar
        self._tasks = task_db
        self._deals = deal_db
        self._settings = settings_db
        self._trello = trello
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _emails(self) -> list[EmailThread]:
        try:
            return await self._mail.fetch_recent_emails(EMAIL_FETCH_LIMIT)
        except Exception as exc:
            logger.error("Failed to fetch recent emails: %s", exc)
            return []

    async def _events(self) -> list[CalendarEvent]:
        try:
            return await self._calendar.fetch_today_events()
        except Exception as exc:
            logger.error("Failed to fetch today's events: %s", exc)
            return []

    async def _sync(self, user: User) -> None:
        if self._trello is None or self._settings is None:
            return
        try:
            await sync_trello_tasks(user, self._tasks, self._settings, self._trello)
        except Exception as exc:
            logger.warning("Failed to sync with Trello: %s", exc)

    async def build(self, user: User, sync: bool = False) -> dict:
        """Return {date, metrics, emails, events, tasks, deals} for today."""
        if sync:
            await self._sync(user)

        emails, events, tasks, deals = await asyncio.gather(
            self._emails(),
            self._events(),
            asyncio.to_thread(self._tasks.list_tasks, user.id),
            asyncio.to_thread(self._deals.list_active, user.id),
        )

        now = self._clock()
        priority_emails = select_priority_emails(emails)
        pending_tasks = [t for t in tasks if t.status == "pending"]
        stale_deals = [d for d in deals if d.is_stale(now)]

        return {
            "date": now.isoformat(),
            "metrics": {
                "meetingsToday": len(events),
                "priorityEmails": len(priority_emails),
                "tasksDue": len(pending_tasks),
                "staleDeals": len(stale_deals),
            },
            "emails": [e.to_dict() for e in priority_emails],
            "events": [e.to_dict() for e in events],
            "tasks": [t.to_dict() for t in pending_tasks[:MAX_BRIEF_TASKS]],
            "deals": [d.to_dict() for d in deals[:MAX_BRIEF_DEALS]],
        }
