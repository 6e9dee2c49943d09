"""
Executive Brief: Data Models.

Local state lives in SQLite: the account, its OAuth tokens and settings,
tasks, pipeline deals and the email-priority memo. Emails and calendar
events live upstream; EmailThread and CalendarEvent are the normalized
shapes the adapters translate them into.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

STALE_AFTER = timedelta(days=7)

PRIORITIES = ("high", "normal", "low")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class User:
    """The single account this dashboard operates on."""

    id: int
    email: str
    name: str
    timezone: str = "America/New_York"
    created_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "timezone": self.timezone,
            "createdAt": self.created_at,
        }


@dataclass
class OAuthToken:
    """Stored credentials for one (user, provider) pair."""

    id: int
    user_id: int
    provider: str                     # e.g. "google"
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    scopes: str = ""
    created_at: str = ""

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass
class UserSettings:
    """Per-user dashboard configuration (one row per user)."""

    user_id: int
    workday_start: str = "08:00"
    workday_end: str = "16:00"
    meeting_windows: list = field(default_factory=list)
    deep_work_blocks: list = field(default_factory=list)
    trello_board_id: str | None = None
    trello_list_id: str | None = None
    updated_at: str = ""

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "workdayStart": self.workday_start,
            "workdayEnd": self.workday_end,
            "meetingWindowsJson": self.meeting_windows,
            "deepWorkBlocksJson": self.deep_work_blocks,
            "trelloBoardId": self.trello_board_id,
            "trelloListId": self.trello_list_id,
            "updatedAt": self.updated_at,
        }


@dataclass
class Task:
    """A to-do item: manual, synced from Trello, or derived from email/event.

    metadata["trelloId"] links the task to its Trello card; the store keeps
    it mirrored into an indexed external_id column for dedup lookups.
    """

    id: int
    user_id: int
    title: str
    status: str = "pending"           # "pending" | "completed"
    due_at: datetime | None = None
    source: str | None = None         # "trello" | "email" | "manual" | ...
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""

    @property
    def external_id(self) -> str | None:
        value = self.metadata.get("trelloId")
        return str(value) if value else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "status": self.status,
            "dueAt": _iso(self.due_at),
            "source": self.source,
            "metadataJson": self.metadata,
            "createdAt": self.created_at,
        }


@dataclass
class Deal:
    """A sales-pipeline record. Staleness is derived from updated_at."""

    id: int
    user_id: int
    provider: str
    deal_id: str
    stage: str
    value: int = 0
    next_action_at: datetime | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_stale(self, now: datetime) -> bool:
        return is_stale(self.updated_at, now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "provider": self.provider,
            "dealId": self.deal_id,
            "stage": self.stage,
            "value": self.value,
            "nextActionAt": _iso(self.next_action_at),
            "notes": self.notes,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


def is_stale(updated_at: datetime | None, now: datetime) -> bool:
    """A deal is stale once strictly more than seven days have passed."""
    if updated_at is None:
        return False
    return now - updated_at > STALE_AFTER


@dataclass
class EmailPriority:
    """Memoized priority label for one email (write-once)."""

    email_id: str
    user_id: int
    priority: str
    analyzed_at: str = ""


@dataclass
class CachedEvent:
    """A locally cached calendar event."""

    id: int
    user_id: int
    source: str
    external_id: str
    start_at: datetime
    end_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class EmailThread:
    """An inbox message normalized from the Gmail API."""

    id: str
    sender: str
    sender_email: str
    subject: str
    preview: str
    timestamp: datetime
    labels: list[str] = field(default_factory=list)
    priority: str = "normal"
    unread: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sender": self.sender,
            "senderEmail": self.sender_email,
            "subject": self.subject,
            "preview": self.preview,
            "timestamp": self.timestamp.isoformat(),
            "labels": self.labels,
            "priority": self.priority,
            "unread": self.unread,
        }


@dataclass
class CalendarEvent:
    """A calendar event normalized from the Google Calendar API."""

    id: str
    title: str
    start_time: str                   # ISO datetime, or date for all-day events
    end_time: str
    type: str = "meeting"             # "meeting" | "deep-work" | "buffer"
    status: str = "confirmed"         # "confirmed" | "tentative" | "declined"
    attendees: int | None = None
    location: str | None = None
    within_work_hours: bool | None = None  # None for all-day events

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "type": self.type,
            "status": self.status,
        }
        if self.attendees is not None:
            data["attendees"] = self.attendees
        if self.location:
            data["location"] = self.location
        if self.within_work_hours is not None:
            data["withinWorkHours"] = self.within_work_hours
        return data
