"""Text generation port: the capability every LLM backend implements.

A backend is an object, not a global switch: callers receive one (or build
one from settings) and can pass a different one per call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class LLMError(Exception):
    """Raised when a text-generation backend call fails."""


class LLMConfigError(LLMError):
    """Raised when a backend is unknown or its credential is missing."""


@dataclass
class Message:
    role: str          # "system" | "user" | "assistant"
    content: str


@dataclass
class GenerationOptions:
    temperature: float = 0.7
    max_tokens: int = 1000


class TextGenerator(Protocol):
    """Abstract text-generation interface used by core modules."""

    name: str
    model: str

    async def generate(self, messages: list[Message], options: GenerationOptions) -> str: ...
