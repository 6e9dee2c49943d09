"""
Executive Brief: LLM Provider Abstraction.

Single public entry point `generate_text()` that routes to a text-generation
backend. The backend is an object implementing TextGenerator; by default it
is built once from the LLM_PROVIDER setting, but any call may pass its own.
Supports: gemini (default), openai, anthropic, cohere.

Each backend needs its own API key. A missing key is a configuration error
raised immediately; there is no fallback to a different backend.
"""

from __future__ import annotations

import logging

from exec_brief.core.deadline import UpstreamTimeoutError, with_deadline
from exec_brief.ports.text_generation_port import (
    GenerationOptions,
    LLMConfigError,
    LLMError,
    Message,
    TextGenerator,
)

logger = logging.getLogger(__name__)


def _split_system(messages: list[Message]) -> tuple[str, list[Message]]:
    system = "\n\n".join(m.content for m in messages if m.role == "system")
    return system, [m for m in messages if m.role != "system"]


# ---------------------------------------------------------------------------
# Backend implementations
# ---------------------------------------------------------------------------


class GeminiGenerator:
    name = "gemini"

    def __init__(self, api_key: str, model: str) -> None:
        self._api_key = api_key
        self.model = model

    async def generate(self, messages: list[Message], options: GenerationOptions) -> str:
        import google.generativeai as genai

        system, chat = _split_system(messages)
        genai.configure(api_key=self._api_key)
        gm = genai.GenerativeModel(
            model_name=self.model,
            system_instruction=system or None,
        )
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [m.content]}
            for m in chat
        ]
        response = await gm.generate_content_async(
            contents,
            generation_config=genai.types.GenerationConfig(
                temperature=options.temperature,
                max_output_tokens=options.max_tokens,
            ),
        )
        return response.text or ""


class OpenAIGenerator:
    name = "openai"

    def __init__(self, api_key: str, model: str) -> None:
        self._api_key = api_key
        self.model = model

    async def generate(self, messages: list[Message], options: GenerationOptions) -> str:
        from openai import AsyncOpenAI

        client = AsyncOpenAI(api_key=self._api_key)
        response = await client.chat.completions.create(
            model=self.model,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            messages=[{"role": m.role, "content": m.content} for m in messages],
        )
        return response.choices[0].message.content or ""


class AnthropicGenerator:
    name = "anthropic"

    def __init__(self, api_key: str, model: str) -> None:
        self._api_key = api_key
        self.model = model

    async def generate(self, messages: list[Message], options: GenerationOptions) -> str:
        import anthropic

        system, chat = _split_system(messages)
        client = anthropic.AsyncAnthropic(api_key=self._api_key)
        kwargs = {
            "model": self.model,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "messages": [
                {"role": "assistant" if m.role == "assistant" else "user", "content": m.content}
                for m in chat
            ],
        }
        if system:
            kwargs["system"] = system
        response = await client.messages.create(**kwargs)
        block = response.content[0]
        return block.text if block.type == "text" else ""


class CohereGenerator:
    name = "cohere"

    def __init__(self, api_key: str, model: str) -> None:
        self._api_key = api_key
        self.model = model

    async def generate(self, messages: list[Message], options: GenerationOptions) -> str:
        import cohere

        client = cohere.AsyncClientV2(api_key=self._api_key)
        response = await client.chat(
            model=self.model,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            messages=[{"role": m.role, "content": m.content} for m in messages],
        )
        return response.message.content[0].text


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------

# name -> (class, default model, settings attribute holding the API key)
_PROVIDERS: dict[str, tuple[type, str, str]] = {
    "gemini":    (GeminiGenerator,    "gemini-2.0-flash",          "GEMINI_API_KEY"),
    "openai":    (OpenAIGenerator,    "gpt-4o-mini",               "OPENAI_API_KEY"),
    "anthropic": (AnthropicGenerator, "claude-haiku-4-5-20251001", "ANTHROPIC_API_KEY"),
    "cohere":    (CohereGenerator,    "command-a-03-2025",         "COHERE_API_KEY"),
}


def build_generator(provider: str | None = None, model: str | None = None) -> TextGenerator:
    """Construct a backend from settings.

    Raises LLMConfigError for an unknown provider or a missing API key.
    """
    from exec_brief.config import settings

    provider_name = (provider or settings.LLM_PROVIDER).lower()
    if provider_name not in _PROVIDERS:
        raise LLMConfigError(
            f"Unknown LLM_PROVIDER={provider_name!r}. "
            f"Supported: {', '.join(_PROVIDERS)}"
        )

    cls, default_model, key_name = _PROVIDERS[provider_name]
    api_key = getattr(settings, key_name)
    if not api_key:
        raise LLMConfigError(f"{key_name} not found")

    chosen_model = model or settings.LLM_MODEL or default_model
    logger.info("LLM provider: %s, model: %s", provider_name, chosen_model)
    return cls(api_key, chosen_model)


# Lazy singleton: populated on first call without an explicit generator
_default_generator: TextGenerator | None = None


def get_default_generator() -> TextGenerator:
    global _default_generator

    if _default_generator is None:
        _default_generator = build_generator()
    return _default_generator


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def generate_text(
    messages: list[Message],
    options: GenerationOptions | None = None,
    generator: TextGenerator | None = None,
) -> str:
    """Send messages to a backend and return the response text.

    Raises LLMConfigError, UpstreamTimeoutError, or LLMError for API
    failures; callers should handle exceptions.
    """
    options = options or GenerationOptions()
    backend = generator or get_default_generator()
    try:
        return await with_deadline(
            backend.generate(messages, options), f"{backend.name} LLM",
        )
    except (LLMError, UpstreamTimeoutError):
        raise
    except Exception as exc:
        logger.error("LLM call to %s failed: %s", backend.name, exc)
        raise LLMError(f"{backend.name} request failed: {exc}") from exc


_TONE_INSTRUCTIONS = {
    "casual": "Write in a casual, friendly tone as if talking to a colleague or friend.",
    "business-casual": (
        "Write in a professional but approachable tone suitable for business communications."
    ),
    "formal": "Write in a formal, professional tone suitable for important business matters.",
}


async def generate_email_draft(
    thread_context: str,
    tone: str = "business-casual",
    generator: TextGenerator | None = None,
) -> str:
    """Draft a reply to an email thread in the requested tone."""
    if tone not in _TONE_INSTRUCTIONS:
        raise ValueError(f"Unknown tone {tone!r}. Supported: {', '.join(_TONE_INSTRUCTIONS)}")

    messages = [
        Message(
            role="system",
            content=(
                "You are an AI assistant helping draft email replies. "
                f"{_TONE_INSTRUCTIONS[tone]} Keep replies concise and actionable. Avoid fluff."
            ),
        ),
        Message(
            role="user",
            content=(
                f"Draft a reply to this email thread:\n\n{thread_context}\n\n"
                "Provide 3 subject line options if this is a new thread."
            ),
        ),
    ]
    return await generate_text(
        messages, GenerationOptions(temperature=0.8), generator=generator,
    )
