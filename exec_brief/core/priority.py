"""
Executive Brief: Email Priority Classifier.

Labels an email high / normal / low with a model call, memoized by email id
in the email_priority_cache table. The memo is write-once with no expiry:
an email's priority is computed once and never recomputed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from exec_brief.core.llm import generate_text
from exec_brief.data.models import PRIORITIES
from exec_brief.ports.text_generation_port import GenerationOptions, Message

if TYPE_CHECKING:
    from exec_brief.data.db import PriorityCacheDB
    from exec_brief.ports.text_generation_port import TextGenerator

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You classify the priority of a single email for a busy executive.\n"
    "Answer 'high' for urgent language, senders who are executives, investors "
    "or key clients, or requests that carry a deadline.\n"
    "Answer 'low' for newsletters, automated notifications, receipts, and "
    "FYI-only messages.\n"
    "Answer 'normal' for everything else.\n"
    "Respond with exactly one word: high, normal, or low."
)

_BODY_LIMIT = 2000


def normalize_priority(raw: str | None) -> str:
    """Trim and lowercase a model answer; anything unexpected becomes 'normal'."""
    label = (raw or "").strip().lower()
    return label if label in PRIORITIES else "normal"


class PriorityClassifier:
    """Model-backed priority labels with a write-once memo."""

    def __init__(
        self,
        cache_db: PriorityCacheDB,
        user_id: int,
        generator: TextGenerator | None = None,
    ) -> None:
        self._cache = cache_db
        self._user_id = user_id
        self._generator = generator

    async def classify(
        self, email_id: str, subject: str, body: str, sender_address: str,
    ) -> str:
        cached = await asyncio.to_thread(self._cache.get_priority, email_id)
        if cached is not None:
            logger.debug("Priority cache hit for %s: %s", email_id, cached.priority)
            return cached.priority

        messages = [
            Message(role="system", content=_SYSTEM_PROMPT),
            Message(
                role="user",
                content=(
                    f"From: {sender_address}\n"
                    f"Subject: {subject}\n\n"
                    f"{(body or '')[:_BODY_LIMIT]}"
                ),
            ),
        ]
        try:
            raw = await generate_text(
                messages,
                GenerationOptions(temperature=0.0, max_tokens=5),
                generator=self._generator,
            )
        except Exception as exc:
            # Not cached: a later fetch gets another chance.
            logger.warning("Priority classification failed for %s: %s", email_id, exc)
            return "normal"

        priority = normalize_priority(raw)
        try:
            await asyncio.to_thread(self._cache.put_priority, email_id, self._user_id, priority)
        except Exception as exc:
            logger.warning("Could not cache priority for %s: %s", email_id, exc)
        logger.info("Email %s classified as %s", email_id, priority)
        return priority
