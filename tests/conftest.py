"""Shared test fixtures and configuration.

Sets up a neutral environment before any exec_brief import (no real
credentials, scheduler off) and provides temp-file SQLite stores plus
in-memory fakes for the Trello board and the text-generation backend.
"""

import os

# Patch env vars BEFORE any exec_brief imports
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("GEMINI_API_KEY", "")
os.environ.setdefault("GOOGLE_OAUTH_CLIENT_ID", "fake-client-id")
os.environ.setdefault("GOOGLE_OAUTH_CLIENT_SECRET", "fake-client-secret")
os.environ.setdefault("TRELLO_API_KEY", "")
os.environ.setdefault("TRELLO_TOKEN", "")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("UPSTREAM_TIMEOUT_SECONDS", "5")

import pytest

from exec_brief.ports.task_board_port import TaskBoardError


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_exec_brief.db")


@pytest.fixture
def user_db(tmp_db_path):
    from exec_brief.data.db import UserDB
    return UserDB(db_path=tmp_db_path)


@pytest.fixture
def token_db(tmp_db_path):
    from exec_brief.data.db import TokenDB
    return TokenDB(db_path=tmp_db_path)


@pytest.fixture
def settings_db(tmp_db_path):
    from exec_brief.data.db import SettingsDB
    return SettingsDB(db_path=tmp_db_path)


@pytest.fixture
def task_db(tmp_db_path):
    from exec_brief.data.db import TaskDB
    return TaskDB(db_path=tmp_db_path)


@pytest.fixture
def deal_db(tmp_db_path):
    from exec_brief.data.db import DealDB
    return DealDB(db_path=tmp_db_path)


@pytest.fixture
def priority_db(tmp_db_path):
    from exec_brief.data.db import PriorityCacheDB
    return PriorityCacheDB(db_path=tmp_db_path)


@pytest.fixture
def event_db(tmp_db_path):
    from exec_brief.data.db import EventCacheDB
    return EventCacheDB(db_path=tmp_db_path)


@pytest.fixture
def user(user_db):
    """The default account, created on first access."""
    return user_db.ensure_user("owner@example.com", "Owner", "America/New_York")


class StubGenerator:
    """TextGenerator that replays a canned reply (or raises) and records calls."""

    name = "stub"
    model = "stub-1"

    def __init__(self, reply="normal", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def generate(self, messages, options):
        self.calls.append((messages, options))
        if self.error is not None:
            raise self.error
        return self.reply


class FakeTrello:
    """In-memory TaskBoardPort: one open board with a 'To Do' list."""

    def __init__(self):
        self.boards = [{"id": "b1", "name": "Work", "closed": False}]
        self.lists = {"b1": [{"id": "l1", "name": "To Do"}]}
        self.cards = {}
        self.fail_with = None
        self._seq = 0

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def fetch_boards(self):
        self._check()
        return [b for b in self.boards if not b.get("closed")]

    async def fetch_board_lists(self, board_id):
        self._check()
        return self.lists.get(board_id, [])

    async def fetch_cards(self, board_id=None, list_id=None):
        self._check()
        cards = list(self.cards.values())
        if list_id:
            return [c for c in cards if c["idList"] == list_id]
        if board_id:
            return [c for c in cards if c["idBoard"] == board_id]
        return cards

    def add_card(self, name, list_id="l1", board_id="b1", **extra):
        self._seq += 1
        card = {
            "id": f"card{self._seq}",
            "name": name,
            "desc": extra.get("desc") or "",
            "due": extra.get("due"),
            "dueComplete": extra.get("dueComplete", False),
            "idList": list_id,
            "idBoard": board_id,
            "url": f"https://trello.com/c/card{self._seq}",
            "labels": [],
        }
        self.cards[card["id"]] = card
        return card

    async def create_card(self, list_id, name, desc=None, due=None, labels=None):
        self._check()
        return self.add_card(name, list_id=list_id, desc=desc, due=due)

    async def update_card(self, card_id, **updates):
        self._check()
        if card_id not in self.cards:
            raise TaskBoardError("Trello API error: Not Found - invalid id")
        self.cards[card_id].update({k: v for k, v in updates.items() if v is not None})
        return self.cards[card_id]

    async def delete_card(self, card_id):
        self._check()
        self.cards.pop(card_id, None)

    async def get_default_list_id(self, board_id=None):
        self._check()
        return "l1"


@pytest.fixture
def stub_generator():
    return StubGenerator()


@pytest.fixture
def fake_trello():
    return FakeTrello()
