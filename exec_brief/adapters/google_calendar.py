"""Google Calendar adapter: implements CalendarPort for Google Calendar API.

All Google-specific logic lives here. Core modules never import this directly;
they depend on the CalendarPort protocol.

Timed events are flagged against the user's stored workday bounds
(withinWorkHours); all-day events carry no flag.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from exec_brief.core.deadline import UpstreamTimeoutError, with_deadline
from exec_brief.data.models import CalendarEvent
from exec_brief.integrations.google_auth import build_service
from exec_brief.ports.calendar_port import CalendarError

if TYPE_CHECKING:
    from exec_brief.core.token_store import TokenStore
    from exec_brief.data.db import SettingsDB

logger = logging.getLogger(__name__)


def classify_event_type(title: str | None) -> str:
    """deep-work / buffer / meeting, by case-insensitive title match."""
    lowered = (title or "").lower()
    if "deep work" in lowered or "focus" in lowered:
        return "deep-work"
    if "buffer" in lowered:
        return "buffer"
    return "meeting"


def map_event_status(status: str | None) -> str:
    if status == "tentative":
        return "tentative"
    if status == "cancelled":
        return "declined"
    return "confirmed"


def _to_minutes(value: str | time | datetime) -> int:
    if isinstance(value, (datetime, time)):
        return value.hour * 60 + value.minute
    hours, minutes = value.strip().split(":")[:2]
    return int(hours) * 60 + int(minutes)


def is_within_work_hours(
    moment: str | time | datetime,
    workday_start: str = "08:00",
    workday_end: str = "16:00",
) -> bool:
    """True if moment falls in [workday_start, workday_end).

    moment may be "HH:MM", a time, or a datetime (its wall-clock time is used).
    """
    current = _to_minutes(moment)
    return _to_minutes(workday_start) <= current < _to_minutes(workday_end)


def _day_bounds(tz: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    zone = ZoneInfo(tz)
    local_now = now.astimezone(zone) if now else datetime.now(zone)
    start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    end = local_now.replace(hour=23, minute=59, second=59, microsecond=0)
    return start, end


def _work_hours_flag(start_time: str | None, tz: str, workday: tuple[str, str]) -> bool | None:
    if not start_time:
        return None
    local = datetime.fromisoformat(start_time.replace("Z", "+00:00")).astimezone(ZoneInfo(tz))
    return is_within_work_hours(local, *workday)


def _to_event(item: dict, tz: str, workday: tuple[str, str]) -> CalendarEvent:
    start = item.get("start", {})
    end = item.get("end", {})
    attendee_count = len(item.get("attendees") or [])
    return CalendarEvent(
        id=item.get("id", ""),
        title=item.get("summary") or "Untitled Event",
        start_time=start.get("dateTime", start.get("date", "")),
        end_time=end.get("dateTime", end.get("date", "")),
        type=classify_event_type(item.get("summary")),
        status=map_event_status(item.get("status")),
        attendees=attendee_count or None,
        location=item.get("location") or None,
        within_work_hours=_work_hours_flag(start.get("dateTime"), tz, workday),
    )


class GoogleCalendarAdapter:
    """Google Calendar implementation of CalendarPort.

    With settings_db and user_id, workday bounds come from the user's stored
    settings on every fetch; otherwise the configured defaults apply.
    """

    def __init__(
        self,
        token_store: TokenStore,
        tz: str | None = None,
        settings_db: SettingsDB | None = None,
        user_id: int | None = None,
    ) -> None:
        if tz is None:
            from exec_brief.config import settings
            tz = settings.TIMEZONE

        self._tokens = token_store
        self._tz = tz
        self._settings = settings_db
        self._user_id = user_id

    async def _workday(self) -> tuple[str, str]:
        if self._settings is None or self._user_id is None:
            from exec_brief.config import settings
            return settings.DEFAULT_WORKDAY_START, settings.DEFAULT_WORKDAY_END
        stored = await asyncio.to_thread(self._settings.get_or_create, self._user_id)
        return stored.workday_start, stored.workday_end

    async def fetch_today_events(self) -> list[CalendarEvent]:
        access_token = await self._tokens.get_valid_access_token("google")
        service = build_service("calendar", "v3", access_token)
        time_min, time_max = _day_bounds(self._tz)

        request = service.events().list(
            calendarId="primary",
            timeMin=time_min.isoformat(),
            timeMax=time_max.isoformat(),
            singleEvents=True,
            orderBy="startTime",
        )
        try:
            result = await with_deadline(asyncio.to_thread(request.execute), "Google Calendar")
        except UpstreamTimeoutError:
            raise
        except Exception as exc:
            logger.error("Failed to fetch today's events: %s", exc)
            raise CalendarError(f"Failed to fetch events: {exc}") from exc

        workday = await self._workday()
        events = [_to_event(item, self._tz, workday) for item in result.get("items", [])]
        logger.info("Found %d event(s) for %s", len(events), time_min.date().isoformat())
        return events
