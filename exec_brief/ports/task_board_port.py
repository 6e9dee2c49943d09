"""Task board port: abstract interface for an external card board (Trello).

Boards hold lists, lists hold cards. Cards are plain dicts in the board's
own shape; card_to_task in the adapter maps them to local tasks.
"""

from __future__ import annotations

from typing import Protocol


class TaskBoardError(Exception):
    """Raised when the board API rejects a request."""


class TaskBoardConfigError(TaskBoardError):
    """Raised when board credentials are missing."""


class TaskBoardPort(Protocol):
    """Abstract task-board interface used by core modules."""

    async def fetch_boards(self) -> list[dict]: ...

    async def fetch_board_lists(self, board_id: str) -> list[dict]: ...

    async def fetch_cards(
        self, board_id: str | None = None, list_id: str | None = None,
    ) -> list[dict]: ...

    async def create_card(
        self,
        list_id: str,
        name: str,
        desc: str | None = None,
        due: str | None = None,
        labels: list[str] | None = None,
    ) -> dict: ...

    async def update_card(self, card_id: str, **updates) -> dict: ...

    async def delete_card(self, card_id: str) -> None: ...

    async def get_default_list_id(self, board_id: str | None = None) -> str: ...
