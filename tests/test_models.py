"""Tests for exec_brief.data.models: records and derived state."""

from datetime import datetime, timedelta, timezone

from exec_brief.data.models import (
    CalendarEvent,
    Deal,
    EmailThread,
    OAuthToken,
    Task,
    is_stale,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Deal staleness
# ---------------------------------------------------------------------------


class TestStaleness:
    def test_seven_days_and_one_second_is_stale(self):
        assert is_stale(NOW - timedelta(days=7, seconds=1), NOW) is True

    def test_exactly_seven_days_is_not_stale(self):
        assert is_stale(NOW - timedelta(days=7), NOW) is False

    def test_six_hours_is_not_stale(self):
        assert is_stale(NOW - timedelta(hours=6), NOW) is False

    def test_missing_updated_at_is_not_stale(self):
        assert is_stale(None, NOW) is False

    def test_deal_method_uses_same_rule(self):
        deal = Deal(
            id=1, user_id=1, provider="hubspot", deal_id="d1", stage="lead",
            updated_at=NOW - timedelta(days=8),
        )
        assert deal.is_stale(NOW) is True


class TestTokenExpiry:
    def test_expiry_at_now_counts_as_expired(self):
        token = OAuthToken(id=1, user_id=1, provider="google", access_token="a", expires_at=NOW)
        assert token.is_expired(NOW) is True

    def test_future_expiry(self):
        token = OAuthToken(
            id=1, user_id=1, provider="google", access_token="a",
            expires_at=NOW + timedelta(minutes=5),
        )
        assert token.is_expired(NOW) is False


# ---------------------------------------------------------------------------
# JSON shapes
# ---------------------------------------------------------------------------


class TestToDict:
    def test_task_to_dict_camel_case(self):
        task = Task(
            id=3, user_id=1, title="Call Bob", due_at=NOW, source="trello",
            metadata={"trelloId": "c1"},
        )
        data = task.to_dict()
        assert data["dueAt"] == NOW.isoformat()
        assert data["metadataJson"] == {"trelloId": "c1"}
        assert task.external_id == "c1"

    def test_event_omits_empty_optionals(self):
        event = CalendarEvent(id="e1", title="Sync", start_time="s", end_time="e")
        data = event.to_dict()
        assert "attendees" not in data
        assert "location" not in data

    def test_email_to_dict(self):
        email = EmailThread(
            id="m1", sender="Ann", sender_email="ann@x.com", subject="Hi",
            preview="...", timestamp=NOW, unread=True,
        )
        data = email.to_dict()
        assert data["senderEmail"] == "ann@x.com"
        assert data["timestamp"] == NOW.isoformat()
        assert data["priority"] == "normal"
