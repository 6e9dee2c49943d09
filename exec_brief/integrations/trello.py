"""Trello integration: implements TaskBoardPort over the Trello REST API.

Authenticates with the key/token query parameters. Closed (archived) boards
are filtered out of board listings since they cannot accept new cards.

card_to_task maps a card onto the local task shape, stamping the card id
into metadata['trelloId'] so later syncs can recognize it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from exec_brief.core.deadline import UpstreamTimeoutError, with_deadline
from exec_brief.ports.task_board_port import TaskBoardConfigError, TaskBoardError

logger = logging.getLogger(__name__)

TRELLO_API_BASE = "https://api.trello.com/1"

_DEFAULT_LIST_HINTS = ("to do", "todo", "backlog")


def _parse_due(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def card_to_task(card: dict) -> dict[str, Any]:
    """Map a Trello card to the fields of a local Task (no id/user)."""
    return {
        "title": card.get("name", ""),
        "due_at": _parse_due(card.get("due")),
        "status": "completed" if card.get("dueComplete") else "pending",
        "source": "trello",
        "metadata": {
            "trelloId": card["id"],
            "boardId": card.get("idBoard"),
            "listId": card.get("idList"),
            "url": card.get("url"),
            "description": card.get("desc") or "",
            "labels": card.get("labels") or [],
        },
    }


class TrelloClient:
    """Trello implementation of TaskBoardPort."""

    def __init__(
        self,
        api_key: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        from exec_brief.config import settings

        self._api_key = settings.TRELLO_API_KEY if api_key is None else api_key
        self._token = settings.TRELLO_TOKEN if token is None else token
        self._timeout = settings.UPSTREAM_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport

    def _auth(self) -> dict[str, str]:
        if not self._api_key or not self._token:
            raise TaskBoardConfigError("Trello API credentials not configured")
        return {"key": self._api_key, "token": self._token}

    async def _request(self, method: str, path: str, params: dict | None = None) -> Any:
        query = {**self._auth(), **(params or {})}
        try:
            async with httpx.AsyncClient(
                base_url=TRELLO_API_BASE,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                resp = await with_deadline(
                    client.request(method, path, params=query), "Trello", self._timeout,
                )
        except httpx.TimeoutException as exc:
            logger.warning("Trello %s %s timed out", method, path)
            raise UpstreamTimeoutError("Trello", self._timeout) from exc
        except httpx.HTTPError as exc:
            logger.error("Trello %s %s failed: %s", method, path, exc)
            raise TaskBoardError(f"Trello API error: {exc}") from exc

        if resp.is_error:
            logger.error("Trello %s %s -> %d: %s", method, path, resp.status_code, resp.text)
            raise TaskBoardError(f"Trello API error: {resp.reason_phrase} - {resp.text}")

        if not resp.content:
            return None
        return resp.json()

    async def fetch_boards(self) -> list[dict]:
        """Open boards of the token's member; closed boards are dropped."""
        boards = await self._request("GET", "/members/me/boards")
        return [b for b in boards if not b.get("closed")]

    async def fetch_board_lists(self, board_id: str) -> list[dict]:
        return await self._request("GET", f"/boards/{board_id}/lists")

    async def fetch_cards(
        self, board_id: str | None = None, list_id: str | None = None,
    ) -> list[dict]:
        """Cards of a list, else of a board, else of every open board."""
        if list_id:
            return await self._request("GET", f"/lists/{list_id}/cards")
        if board_id:
            return await self._request("GET", f"/boards/{board_id}/cards")

        all_cards: list[dict] = []
        for board in await self.fetch_boards():
            try:
                all_cards.extend(await self._request("GET", f"/boards/{board['id']}/cards"))
            except TaskBoardError as exc:
                logger.warning("Skipping cards of board %s: %s", board["id"], exc)
        return all_cards

    async def create_card(
        self,
        list_id: str,
        name: str,
        desc: str | None = None,
        due: str | None = None,
        labels: list[str] | None = None,
    ) -> dict:
        params: dict[str, str] = {"idList": list_id, "name": name}
        if desc:
            params["desc"] = desc
        if due:
            params["due"] = due
        if labels:
            params["idLabels"] = ",".join(labels)

        card = await self._request("POST", "/cards", params)
        logger.info("Trello card created: %s '%s' in list %s", card.get("id"), name, list_id)
        return card

    async def update_card(self, card_id: str, **updates) -> dict:
        """Update name, desc, due, dueComplete and/or idList."""
        params: dict[str, str] = {}
        if updates.get("name"):
            params["name"] = updates["name"]
        if updates.get("desc") is not None:
            params["desc"] = updates["desc"]
        if updates.get("due") is not None:
            params["due"] = updates["due"]
        if updates.get("dueComplete") is not None:
            params["dueComplete"] = "true" if updates["dueComplete"] else "false"
        if updates.get("idList"):
            params["idList"] = updates["idList"]

        card = await self._request("PUT", f"/cards/{card_id}", params)
        logger.info("Trello card %s updated", card_id)
        return card

    async def delete_card(self, card_id: str) -> None:
        await self._request("DELETE", f"/cards/{card_id}")
        logger.info("Trello card %s deleted", card_id)

    async def get_default_list_id(self, board_id: str | None = None) -> str:
        """A 'To Do' / 'Backlog' list if one exists, else the first list."""
        target_board = board_id
        if not target_board:
            boards = await self.fetch_boards()
            if not boards:
                raise TaskBoardError("No Trello boards found")
            target_board = boards[0]["id"]

        lists = await self.fetch_board_lists(target_board)
        if not lists:
            raise TaskBoardError("No lists found on board")

        for lst in lists:
            name = (lst.get("name") or "").lower()
            if any(hint in name for hint in _DEFAULT_LIST_HINTS):
                return lst["id"]
        return lists[0]["id"]
