"""
Executive Brief: SQLite storage.

One store class per table family, all sharing the same database file.
Timestamps are stored as ISO-8601 text in UTC; JSON columns hold the
free-form settings lists and task metadata.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

from exec_brief.data.models import (
    CachedEvent,
    Deal,
    EmailPriority,
    OAuthToken,
    Task,
    User,
    UserSettings,
)

logger = logging.getLogger(__name__)

_UNSET = object()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_text(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_text(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class _SQLiteStore:
    """Connection handling shared by every store."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from exec_brief.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        raise NotImplementedError


class UserDB(_SQLiteStore):
    """The account table. Email is unique; creation is an upsert."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    email       TEXT NOT NULL UNIQUE,
                    name        TEXT NOT NULL,
                    timezone    TEXT NOT NULL DEFAULT 'America/New_York',
                    created_at  TEXT NOT NULL
                )
            """)
        logger.debug("Users table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            timezone=row["timezone"],
            created_at=row["created_at"],
        )

    def get_by_email(self, email: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return self._row_to_user(row) if row else None

    def ensure_user(self, email: str, name: str, tz: str = "America/New_York") -> User:
        """Return the user with this email, creating it if absent.

        INSERT OR IGNORE on the unique email makes concurrent first calls
        converge on a single row.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO users (email, name, timezone, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (email, name, tz, _to_text(utcnow())),
            )
        user = self.get_by_email(email)
        if cursor.rowcount > 0:
            logger.info("User created: #%d <%s>", user.id, email)
        return user


class TokenDB(_SQLiteStore):
    """OAuth credentials, unique per (user, provider)."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS oauth_tokens (
                    id             INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id        INTEGER NOT NULL,
                    provider       TEXT NOT NULL,
                    access_token   TEXT NOT NULL,
                    refresh_token  TEXT,
                    expires_at     TEXT,
                    scopes         TEXT NOT NULL DEFAULT '',
                    created_at     TEXT NOT NULL,
                    UNIQUE (user_id, provider)
                )
            """)
        logger.debug("OAuth tokens table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_token(row: sqlite3.Row) -> OAuthToken:
        return OAuthToken(
            id=row["id"],
            user_id=row["user_id"],
            provider=row["provider"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expires_at=_from_text(row["expires_at"]),
            scopes=row["scopes"],
            created_at=row["created_at"],
        )

    def get_token(self, provider: str, user_id: int | None = None) -> OAuthToken | None:
        """Fetch the stored token for a provider (optionally scoped to a user)."""
        query = "SELECT * FROM oauth_tokens WHERE provider = ?"
        params: list = [provider]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        query += " ORDER BY id LIMIT 1"
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        return self._row_to_token(row) if row else None

    def save_token(
        self,
        user_id: int,
        provider: str,
        access_token: str,
        refresh_token: str | None,
        expires_at: datetime | None,
        scopes: str = "",
    ) -> OAuthToken:
        """Insert or replace the credentials for (user, provider).

        A re-authorization that omits the refresh token keeps the old one.
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO oauth_tokens
                    (user_id, provider, access_token, refresh_token, expires_at, scopes, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (user_id, provider) DO UPDATE SET
                    access_token  = excluded.access_token,
                    refresh_token = COALESCE(excluded.refresh_token, oauth_tokens.refresh_token),
                    expires_at    = excluded.expires_at,
                    scopes        = excluded.scopes
                """,
                (
                    user_id, provider, access_token, refresh_token,
                    _to_text(expires_at), scopes, _to_text(utcnow()),
                ),
            )
            row = conn.execute(
                "SELECT * FROM oauth_tokens WHERE user_id = ? AND provider = ?",
                (user_id, provider),
            ).fetchone()
        logger.info("OAuth token saved for user %d, provider %s", user_id, provider)
        return self._row_to_token(row)

    def update_access_token(
        self, token_id: int, access_token: str, expires_at: datetime | None,
    ) -> None:
        """Persist a refreshed access token in place."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE oauth_tokens SET access_token = ?, expires_at = ? WHERE id = ?",
                (access_token, _to_text(expires_at), token_id),
            )
        logger.info("OAuth token #%d refreshed, expires %s", token_id, expires_at)


class SettingsDB(_SQLiteStore):
    """Per-user settings, upserted; one row per user."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    user_id                INTEGER PRIMARY KEY,
                    workday_start          TEXT NOT NULL DEFAULT '08:00',
                    workday_end            TEXT NOT NULL DEFAULT '16:00',
                    meeting_windows_json   TEXT NOT NULL DEFAULT '[]',
                    deep_work_blocks_json  TEXT NOT NULL DEFAULT '[]',
                    trello_board_id        TEXT,
                    trello_list_id         TEXT,
                    updated_at             TEXT NOT NULL
                )
            """)
        logger.debug("Settings table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_settings(row: sqlite3.Row) -> UserSettings:
        return UserSettings(
            user_id=row["user_id"],
            workday_start=row["workday_start"],
            workday_end=row["workday_end"],
            meeting_windows=json.loads(row["meeting_windows_json"] or "[]"),
            deep_work_blocks=json.loads(row["deep_work_blocks_json"] or "[]"),
            trello_board_id=row["trello_board_id"],
            trello_list_id=row["trello_list_id"],
            updated_at=row["updated_at"],
        )

    def get_settings(self, user_id: int) -> UserSettings | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM settings WHERE user_id = ?", (user_id,)
            ).fetchone()
        return self._row_to_settings(row) if row else None

    def upsert_settings(self, user_id: int, **updates) -> UserSettings:
        """Merge the given fields into the user's settings row.

        Accepts workday_start, workday_end, meeting_windows,
        deep_work_blocks, trello_board_id and trello_list_id. Fields left
        out keep their stored (or default) value.
        """
        current = self.get_settings(user_id) or self.default_settings(user_id)
        for key, value in updates.items():
            if not hasattr(current, key) or key in ("user_id", "updated_at"):
                raise ValueError(f"Unknown settings field: {key}")
            setattr(current, key, value)
        current.updated_at = _to_text(utcnow())

        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO settings
                    (user_id, workday_start, workday_end, meeting_windows_json,
                     deep_work_blocks_json, trello_board_id, trello_list_id, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    current.workday_start,
                    current.workday_end,
                    json.dumps(current.meeting_windows or []),
                    json.dumps(current.deep_work_blocks or []),
                    current.trello_board_id,
                    current.trello_list_id,
                    current.updated_at,
                ),
            )
        logger.info("Settings saved for user %d", user_id)
        return current

    def get_or_create(self, user_id: int) -> UserSettings:
        """Return stored settings, creating the defaults on first access."""
        existing = self.get_settings(user_id)
        if existing is not None:
            return existing
        return self.upsert_settings(user_id)

    @staticmethod
    def default_settings(user_id: int) -> UserSettings:
        from exec_brief.config import settings

        return UserSettings(
            user_id=user_id,
            workday_start=settings.DEFAULT_WORKDAY_START,
            workday_end=settings.DEFAULT_WORKDAY_END,
        )


class TaskDB(_SQLiteStore):
    """Local tasks. external_id mirrors metadata['trelloId'] and is indexed."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id             INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id        INTEGER NOT NULL,
                    title          TEXT NOT NULL,
                    status         TEXT NOT NULL DEFAULT 'pending',
                    due_at         TEXT,
                    source         TEXT,
                    metadata_json  TEXT NOT NULL DEFAULT '{}',
                    created_at     TEXT NOT NULL
                )
            """)
            # Migrate existing DBs: add new columns if missing
            existing_cols = {
                row[1] for row in conn.execute("PRAGMA table_info(tasks)").fetchall()
            }
            if "external_id" not in existing_cols:
                conn.execute("ALTER TABLE tasks ADD COLUMN external_id TEXT")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_external_id "
                "ON tasks (user_id, external_id)"
            )
        logger.debug("Tasks table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            status=row["status"],
            due_at=_from_text(row["due_at"]),
            source=row["source"],
            metadata=json.loads(row["metadata_json"] or "{}"),
            created_at=row["created_at"],
        )

    def create_task(
        self,
        user_id: int,
        title: str,
        status: str = "pending",
        due_at: datetime | None = None,
        source: str | None = None,
        metadata: dict | None = None,
    ) -> Task:
        metadata = metadata or {}
        external_id = metadata.get("trelloId")
        now = _to_text(utcnow())
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tasks
                    (user_id, title, status, due_at, source, metadata_json, external_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id, title, status, _to_text(due_at), source,
                    json.dumps(metadata), str(external_id) if external_id else None, now,
                ),
            )
            task_id = cursor.lastrowid
        logger.info("Task added: #%d '%s' (source=%s)", task_id, title, source)
        return Task(
            id=task_id,
            user_id=user_id,
            title=title,
            status=status,
            due_at=due_at,
            source=source,
            metadata=metadata,
            created_at=now,
        )

    def get_task(self, task_id: int) -> Task | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return self._row_to_task(row) if row else None

    def find_by_external_id(self, user_id: int, external_id: str) -> Task | None:
        """Indexed lookup of the task mirroring an external card."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tasks WHERE user_id = ? AND external_id = ? ORDER BY id LIMIT 1",
                (user_id, external_id),
            ).fetchone()
        return self._row_to_task(row) if row else None

    def list_tasks(self, user_id: int) -> list[Task]:
        """All tasks for a user, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def update_task(
        self,
        task_id: int,
        title=_UNSET,
        status=_UNSET,
        due_at=_UNSET,
        metadata=_UNSET,
    ) -> Task | None:
        """Update the given fields; due_at=None clears the due date."""
        assignments: list[str] = []
        params: list = []
        if title is not _UNSET:
            assignments.append("title = ?")
            params.append(title)
        if status is not _UNSET:
            assignments.append("status = ?")
            params.append(status)
        if due_at is not _UNSET:
            assignments.append("due_at = ?")
            params.append(_to_text(due_at))
        if metadata is not _UNSET:
            external_id = (metadata or {}).get("trelloId")
            assignments.append("metadata_json = ?")
            params.append(json.dumps(metadata or {}))
            assignments.append("external_id = ?")
            params.append(str(external_id) if external_id else None)

        if assignments:
            params.append(task_id)
            with self._connect() as conn:
                conn.execute(
                    f"UPDATE tasks SET {', '.join(assignments)} WHERE id = ?", params,
                )
            logger.info("Task #%d updated", task_id)
        return self.get_task(task_id)

    def update_status(self, task_id: int, status: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE tasks SET status = ? WHERE id = ?", (status, task_id),
            )
        updated = cursor.rowcount > 0
        if updated:
            logger.info("Task #%d marked %s", task_id, status)
        return updated

    def delete_task(self, task_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Task #%d deleted", task_id)
        return deleted


class DealDB(_SQLiteStore):
    """Sales pipeline records."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS pipelines (
                    id              INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id         INTEGER NOT NULL,
                    provider        TEXT NOT NULL,
                    deal_id         TEXT NOT NULL,
                    stage           TEXT NOT NULL,
                    value           INTEGER NOT NULL DEFAULT 0,
                    next_action_at  TEXT,
                    notes           TEXT,
                    created_at      TEXT NOT NULL,
                    updated_at      TEXT NOT NULL
                )
            """)
        logger.debug("Pipelines table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_deal(row: sqlite3.Row) -> Deal:
        return Deal(
            id=row["id"],
            user_id=row["user_id"],
            provider=row["provider"],
            deal_id=row["deal_id"],
            stage=row["stage"],
            value=row["value"],
            next_action_at=_from_text(row["next_action_at"]),
            notes=row["notes"],
            created_at=_from_text(row["created_at"]),
            updated_at=_from_text(row["updated_at"]),
        )

    def create_deal(
        self,
        user_id: int,
        provider: str,
        deal_id: str,
        stage: str,
        value: int = 0,
        next_action_at: datetime | None = None,
        notes: str | None = None,
        updated_at: datetime | None = None,
    ) -> Deal:
        now = utcnow()
        updated_at = updated_at or now
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO pipelines
                    (user_id, provider, deal_id, stage, value, next_action_at,
                     notes, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id, provider, deal_id, stage, value,
                    _to_text(next_action_at), notes, _to_text(now), _to_text(updated_at),
                ),
            )
            row_id = cursor.lastrowid
        logger.info("Deal added: #%d %s/%s at stage '%s'", row_id, provider, deal_id, stage)
        return Deal(
            id=row_id,
            user_id=user_id,
            provider=provider,
            deal_id=deal_id,
            stage=stage,
            value=value,
            next_action_at=next_action_at,
            notes=notes,
            created_at=now,
            updated_at=updated_at,
        )

    def list_active(self, user_id: int) -> list[Deal]:
        """All deals for a user, most recently updated first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM pipelines WHERE user_id = ? ORDER BY updated_at DESC, id DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_deal(r) for r in rows]


class PriorityCacheDB(_SQLiteStore):
    """Write-once memo of email priority labels, unique per email id."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS email_priority_cache (
                    email_id     TEXT PRIMARY KEY,
                    user_id      INTEGER NOT NULL,
                    priority     TEXT NOT NULL,
                    analyzed_at  TEXT NOT NULL
                )
            """)
        logger.debug("Email priority cache initialized at %s", self._db_path)

    def get_priority(self, email_id: str) -> EmailPriority | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM email_priority_cache WHERE email_id = ?", (email_id,),
            ).fetchone()
        if row is None:
            return None
        return EmailPriority(
            email_id=row["email_id"],
            user_id=row["user_id"],
            priority=row["priority"],
            analyzed_at=row["analyzed_at"],
        )

    def put_priority(self, email_id: str, user_id: int, priority: str) -> EmailPriority:
        """Insert a label. Raises sqlite3.IntegrityError if one already exists."""
        analyzed_at = _to_text(utcnow())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO email_priority_cache (email_id, user_id, priority, analyzed_at)
                VALUES (?, ?, ?, ?)
                """,
                (email_id, user_id, priority, analyzed_at),
            )
        return EmailPriority(
            email_id=email_id, user_id=user_id, priority=priority, analyzed_at=analyzed_at,
        )


class EventCacheDB(_SQLiteStore):
    """Optional local cache of upstream calendar events."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events_cache (
                    id             INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id        INTEGER NOT NULL,
                    source         TEXT NOT NULL,
                    external_id    TEXT NOT NULL,
                    start_at       TEXT NOT NULL,
                    end_at         TEXT NOT NULL,
                    metadata_json  TEXT NOT NULL DEFAULT '{}',
                    created_at     TEXT NOT NULL,
                    UNIQUE (user_id, source, external_id)
                )
            """)
        logger.debug("Events cache initialized at %s", self._db_path)

    def cache_events(self, user_id: int, source: str, events: list[dict]) -> int:
        """Insert events, ignoring ones already cached. Returns rows inserted.

        Each dict needs external_id, start_at and end_at (datetimes) and may
        carry a metadata dict.
        """
        inserted = 0
        now = _to_text(utcnow())
        with self._connect() as conn:
            for ev in events:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO events_cache
                        (user_id, source, external_id, start_at, end_at, metadata_json, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user_id, source, ev["external_id"],
                        _to_text(ev["start_at"]), _to_text(ev["end_at"]),
                        json.dumps(ev.get("metadata", {})), now,
                    ),
                )
                inserted += cursor.rowcount
        logger.debug("Cached %d of %d %s event(s)", inserted, len(events), source)
        return inserted

    def get_today_events(self, user_id: int, tz: str = "UTC") -> list[CachedEvent]:
        """Cached events starting between local midnight and 23:59:59 today."""
        zone = ZoneInfo(tz)
        local_now = datetime.now(zone)
        start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        end = local_now.replace(hour=23, minute=59, second=59, microsecond=0)
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM events_cache
                WHERE user_id = ? AND start_at >= ? AND start_at <= ?
                ORDER BY start_at
                """,
                (user_id, _to_text(start), _to_text(end)),
            ).fetchall()
        return [
            CachedEvent(
                id=r["id"],
                user_id=r["user_id"],
                source=r["source"],
                external_id=r["external_id"],
                start_at=_from_text(r["start_at"]),
                end_at=_from_text(r["end_at"]),
                metadata=json.loads(r["metadata_json"] or "{}"),
            )
            for r in rows
        ]
