"""Request bodies for the HTTP API.

Field names follow the dashboard's camelCase JSON.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, EmailStr


class DraftRequest(BaseModel):
    threadId: str
    tone: Literal["casual", "business-casual", "formal"] = "business-casual"
    context: str


class SendEmailRequest(BaseModel):
    to: EmailStr
    subject: str
    body: str


class SettingsUpdate(BaseModel):
    """Partial settings update; only the fields sent are changed."""

    workdayStart: str | None = None
    workdayEnd: str | None = None
    meetingWindowsJson: Any = None
    deepWorkBlocksJson: Any = None
    trelloBoardId: str | None = None
    trelloListId: str | None = None

    def to_store_fields(self) -> dict[str, Any]:
        names = {
            "workdayStart": "workday_start",
            "workdayEnd": "workday_end",
            "meetingWindowsJson": "meeting_windows",
            "deepWorkBlocksJson": "deep_work_blocks",
            "trelloBoardId": "trello_board_id",
            "trelloListId": "trello_list_id",
        }
        return {names[k]: v for k, v in self.model_dump(exclude_unset=True).items()}


class TaskCreate(BaseModel):
    title: str
    dueAt: str | None = None
    source: str | None = None
    priority: str | None = None


class TaskStatusUpdate(BaseModel):
    status: str


class TaskFromEmail(BaseModel):
    emailId: str
    subject: str
    content: str | None = None


class TaskFromEvent(BaseModel):
    eventId: str
    eventTitle: str
    startTime: str
    attendees: list[str] | None = None


class CardCreate(BaseModel):
    name: str
    desc: str | None = None
    due: str | None = None


class CardUpdate(BaseModel):
    name: str | None = None
    desc: str | None = None
    due: str | None = None
    dueComplete: bool | None = None
    idList: str | None = None
