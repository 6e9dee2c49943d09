"""
Executive Brief: Application context.

Builds the stores, the token store and the provider adapters once per
process and resolves the default user, so the HTTP layer and the
scheduler share the same wiring.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from exec_brief.adapters.google_calendar import GoogleCalendarAdapter
from exec_brief.core.brief import BriefBuilder
from exec_brief.core.priority import PriorityClassifier
from exec_brief.core.token_store import TokenStore
from exec_brief.data.db import (
    DealDB,
    PriorityCacheDB,
    SettingsDB,
    TaskDB,
    TokenDB,
    UserDB,
)
from exec_brief.data.models import User
from exec_brief.integrations.gmail import GmailAdapter
from exec_brief.integrations.trello import TrelloClient
from exec_brief.ports.calendar_port import CalendarPort
from exec_brief.ports.mail_port import MailPort
from exec_brief.ports.task_board_port import TaskBoardPort
from exec_brief.ports.text_generation_port import TextGenerator

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Shared dependencies for request handlers and scheduled jobs.

    generator=None means the LLM_PROVIDER default, built on first use.
    """

    user: User
    users: UserDB
    token_db: TokenDB
    settings_db: SettingsDB
    task_db: TaskDB
    deal_db: DealDB
    priority_db: PriorityCacheDB
    token_store: TokenStore
    mail: MailPort
    calendar: CalendarPort
    trello: TaskBoardPort
    generator: TextGenerator | None = None

    def brief_builder(self) -> BriefBuilder:
        return BriefBuilder(
            mail=self.mail,
            calendar=self.calendar,
            task_db=self.task_db,
            deal_db=self.deal_db,
            settings_db=self.settings_db,
            trello=self.trello,
        )


def build_context(
    db_path: str | None = None, generator: TextGenerator | None = None,
) -> AppContext:
    """Wire the production context from settings.

    generator, when given, backs both drafting and priority classification.
    """
    from exec_brief.config import settings

    users = UserDB(db_path=db_path)
    user = users.ensure_user(
        settings.DEFAULT_USER_EMAIL, settings.DEFAULT_USER_NAME, settings.TIMEZONE,
    )
    token_db = TokenDB(db_path=db_path)
    priority_db = PriorityCacheDB(db_path=db_path)
    settings_db = SettingsDB(db_path=db_path)
    token_store = TokenStore(token_db, user_id=user.id)
    classifier = PriorityClassifier(priority_db, user.id, generator)

    logger.info("Context ready for user #%d <%s>", user.id, user.email)
    return AppContext(
        user=user,
        users=users,
        token_db=token_db,
        settings_db=settings_db,
        task_db=TaskDB(db_path=db_path),
        deal_db=DealDB(db_path=db_path),
        priority_db=priority_db,
        token_store=token_store,
        mail=GmailAdapter(token_store, classifier=classifier),
        calendar=GoogleCalendarAdapter(
            token_store, tz=user.timezone, settings_db=settings_db, user_id=user.id,
        ),
        trello=TrelloClient(),
        generator=generator,
    )
