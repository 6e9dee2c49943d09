"""Tests for exec_brief.data.db: SQLite stores."""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest


class TestUserDB:
    def test_ensure_user_creates_once(self, user_db):
        first = user_db.ensure_user("a@example.com", "A")
        second = user_db.ensure_user("a@example.com", "Someone Else")
        assert first.id == second.id
        assert second.name == "A"

    def test_get_by_email_missing(self, user_db):
        assert user_db.get_by_email("nobody@example.com") is None

    def test_ensure_user_returns_stored_row(self, user_db):
        created = user_db.ensure_user("b@example.com", "B", "Europe/London")
        fetched = user_db.get_by_email("b@example.com")
        assert fetched.id == created.id
        assert fetched.email == "b@example.com"
        assert fetched.timezone == "Europe/London"


class TestTokenDB:
    def test_save_and_get(self, token_db, user):
        expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
        token_db.save_token(user.id, "google", "acc", "ref", expires, "scope-a")
        token = token_db.get_token("google", user.id)
        assert token.access_token == "acc"
        assert token.refresh_token == "ref"
        assert token.expires_at == expires

    def test_save_is_upsert_per_provider(self, token_db, user):
        token_db.save_token(user.id, "google", "acc1", "ref1", None)
        token_db.save_token(user.id, "google", "acc2", "ref2", None)
        with sqlite3.connect(token_db._db_path) as conn:
            count = conn.execute("SELECT COUNT(*) FROM oauth_tokens").fetchone()[0]
        assert count == 1
        assert token_db.get_token("google", user.id).access_token == "acc2"

    def test_reauthorize_without_refresh_keeps_old(self, token_db, user):
        token_db.save_token(user.id, "google", "acc1", "ref1", None)
        token_db.save_token(user.id, "google", "acc2", None, None)
        assert token_db.get_token("google", user.id).refresh_token == "ref1"

    def test_update_access_token(self, token_db, user):
        saved = token_db.save_token(user.id, "google", "old", "ref", None)
        new_expiry = datetime(2031, 5, 5, 12, tzinfo=timezone.utc)
        token_db.update_access_token(saved.id, "new", new_expiry)
        token = token_db.get_token("google")
        assert token.access_token == "new"
        assert token.expires_at == new_expiry

    def test_missing_token(self, token_db):
        assert token_db.get_token("google") is None


class TestSettingsDB:
    def test_get_or_create_is_idempotent(self, settings_db, user):
        first = settings_db.get_or_create(user.id)
        second = settings_db.get_or_create(user.id)
        assert first.to_dict() == second.to_dict()
        assert first.workday_start == "08:00"
        assert first.workday_end == "16:00"

    def test_upsert_merges_fields(self, settings_db, user):
        settings_db.upsert_settings(user.id, trello_board_id="b1")
        updated = settings_db.upsert_settings(user.id, trello_list_id="l1")
        assert updated.trello_board_id == "b1"
        assert updated.trello_list_id == "l1"

    def test_json_lists_round_trip(self, settings_db, user):
        windows = [{"start": "10:00", "end": "12:00"}]
        settings_db.upsert_settings(user.id, meeting_windows=windows)
        assert settings_db.get_settings(user.id).meeting_windows == windows

    def test_unknown_field_rejected(self, settings_db, user):
        with pytest.raises(ValueError, match="Unknown settings field"):
            settings_db.upsert_settings(user.id, favourite_color="blue")


class TestTaskDB:
    def test_create_task_defaults(self, task_db, user):
        task = task_db.create_task(user.id, "Write memo")
        assert task.id is not None
        assert task.status == "pending"
        assert task.metadata == {}

    def test_find_by_external_id(self, task_db, user):
        task_db.create_task(user.id, "Plain")
        mirrored = task_db.create_task(
            user.id, "From card", source="trello", metadata={"trelloId": "c42"},
        )
        found = task_db.find_by_external_id(user.id, "c42")
        assert found.id == mirrored.id
        assert found.external_id == "c42"
        assert task_db.find_by_external_id(user.id, "c43") is None

    def test_list_tasks_newest_first(self, task_db, user):
        task_db.create_task(user.id, "First")
        task_db.create_task(user.id, "Second")
        titles = [t.title for t in task_db.list_tasks(user.id)]
        assert titles == ["Second", "First"]

    def test_update_task_fields(self, task_db, user):
        task = task_db.create_task(
            user.id, "Old", due_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
        )
        updated = task_db.update_task(task.id, title="New", status="completed", due_at=None)
        assert updated.title == "New"
        assert updated.status == "completed"
        assert updated.due_at is None

    def test_update_metadata_moves_external_id(self, task_db, user):
        task = task_db.create_task(user.id, "T", metadata={"trelloId": "c1"})
        task_db.update_task(task.id, metadata={"trelloId": "c2"})
        assert task_db.find_by_external_id(user.id, "c1") is None
        assert task_db.find_by_external_id(user.id, "c2").id == task.id

    def test_update_status_missing_task(self, task_db):
        assert task_db.update_status(999, "completed") is False

    def test_delete_task(self, task_db, user):
        task = task_db.create_task(user.id, "Gone")
        assert task_db.delete_task(task.id) is True
        assert task_db.get_task(task.id) is None


class TestDealDB:
    def test_list_active_most_recent_first(self, deal_db, user):
        now = datetime.now(timezone.utc)
        deal_db.create_deal(user.id, "hubspot", "d1", "proposal", updated_at=now - timedelta(days=3))
        deal_db.create_deal(user.id, "hubspot", "d2", "negotiation", updated_at=now)
        deal_db.create_deal(user.id, "hubspot", "d3", "lead", updated_at=now - timedelta(days=10))
        assert [d.deal_id for d in deal_db.list_active(user.id)] == ["d2", "d1", "d3"]

    def test_list_active_scoped_to_user(self, deal_db, user):
        deal_db.create_deal(user.id + 1, "hubspot", "other", "lead")
        assert deal_db.list_active(user.id) == []


class TestPriorityCacheDB:
    def test_put_then_get(self, priority_db, user):
        priority_db.put_priority("m1", user.id, "high")
        assert priority_db.get_priority("m1").priority == "high"

    def test_second_put_violates_unique(self, priority_db, user):
        priority_db.put_priority("m1", user.id, "high")
        with pytest.raises(sqlite3.IntegrityError):
            priority_db.put_priority("m1", user.id, "low")
        assert priority_db.get_priority("m1").priority == "high"


class TestEventCacheDB:
    def test_cache_ignores_duplicates(self, event_db, user):
        now = datetime.now(timezone.utc)
        event = {"external_id": "e1", "start_at": now, "end_at": now + timedelta(hours=1)}
        assert event_db.cache_events(user.id, "google", [event]) == 1
        assert event_db.cache_events(user.id, "google", [event]) == 0

    def test_today_events(self, event_db, user):
        now = datetime.now(timezone.utc)
        event_db.cache_events(user.id, "google", [
            {"external_id": "today", "start_at": now, "end_at": now + timedelta(hours=1)},
            {"external_id": "later", "start_at": now + timedelta(days=3),
             "end_at": now + timedelta(days=3, hours=1)},
        ])
        events = event_db.get_today_events(user.id, "UTC")
        assert [e.external_id for e in events] == ["today"]
