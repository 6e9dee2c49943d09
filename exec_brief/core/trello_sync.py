"""
Executive Brief: Trello → local task sync.

Pulls the cards of the user's configured Trello list and creates a local
task for every card not yet mirrored. A card is mirrored when some task of
the user carries its id in metadata['trelloId'] (indexed external_id
lookup, so each card costs one query instead of a scan of all tasks).
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from exec_brief.integrations.trello import card_to_task

if TYPE_CHECKING:
    from exec_brief.data.db import SettingsDB, TaskDB
    from exec_brief.data.models import User
    from exec_brief.ports.task_board_port import TaskBoardPort

logger = logging.getLogger(__name__)


async def sync_trello_tasks(
    user: User,
    task_db: TaskDB,
    settings_db: SettingsDB,
    trello: TaskBoardPort,
) -> int:
    """Mirror new cards of the configured list into local tasks.

    Returns the number of tasks created. Does nothing until a Trello list
    is selected in settings. Board errors propagate to the caller.
    """
    user_settings = await asyncio.to_thread(settings_db.get_settings, user.id)
    list_id = user_settings.trello_list_id if user_settings else None
    if not list_id:
        logger.debug("Trello sync skipped: no list configured for user %d", user.id)
        return 0

    cards = await trello.fetch_cards(board_id=user_settings.trello_board_id, list_id=list_id)

    created = 0
    for card in cards:
        fields = card_to_task(card)
        trello_id = fields["metadata"]["trelloId"]
        existing = await asyncio.to_thread(task_db.find_by_external_id, user.id, trello_id)
        if existing is not None:
            continue
        await asyncio.to_thread(
            task_db.create_task,
            user.id,
            fields["title"],
            fields["status"],
            fields["due_at"],
            fields["source"],
            fields["metadata"],
        )
        created += 1

    logger.info("Trello sync: %d card(s) seen, %d task(s) created", len(cards), created)
    return created
