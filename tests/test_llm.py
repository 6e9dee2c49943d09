"""Tests for exec_brief.core.llm: backend selection and dispatch."""

import asyncio
from unittest.mock import patch

import pytest

from exec_brief.core import llm
from exec_brief.core.deadline import UpstreamTimeoutError
from exec_brief.ports.text_generation_port import (
    GenerationOptions,
    LLMConfigError,
    LLMError,
    Message,
)


class TestBuildGenerator:
    def test_missing_key_fails_fast(self):
        with patch("exec_brief.config.settings.OPENAI_API_KEY", ""):
            with pytest.raises(LLMConfigError, match="OPENAI_API_KEY"):
                llm.build_generator("openai")

    def test_unknown_provider(self):
        with pytest.raises(LLMConfigError, match="Unknown LLM_PROVIDER"):
            llm.build_generator("watson")

    def test_builds_selected_backend_with_default_model(self):
        with patch("exec_brief.config.settings.ANTHROPIC_API_KEY", "sk-test"), \
             patch("exec_brief.config.settings.LLM_MODEL", ""):
            generator = llm.build_generator("anthropic")
        assert isinstance(generator, llm.AnthropicGenerator)
        assert generator.model == "claude-haiku-4-5-20251001"

    def test_explicit_model_wins(self):
        with patch("exec_brief.config.settings.GEMINI_API_KEY", "g-test"):
            generator = llm.build_generator("gemini", model="gemini-1.5-pro")
        assert generator.model == "gemini-1.5-pro"


class TestGenerateText:
    @pytest.mark.asyncio
    async def test_uses_given_generator(self, stub_generator):
        stub_generator.reply = "hello"
        options = GenerationOptions(temperature=0.1, max_tokens=10)
        result = await llm.generate_text(
            [Message("user", "hi")], options, generator=stub_generator,
        )
        assert result == "hello"
        assert stub_generator.calls[0][1] is options

    @pytest.mark.asyncio
    async def test_default_options(self, stub_generator):
        await llm.generate_text([Message("user", "hi")], generator=stub_generator)
        options = stub_generator.calls[0][1]
        assert options.temperature == 0.7
        assert options.max_tokens == 1000

    @pytest.mark.asyncio
    async def test_vendor_errors_wrapped(self, stub_generator):
        stub_generator.error = RuntimeError("rate limited")
        with pytest.raises(LLMError, match="rate limited"):
            await llm.generate_text([Message("user", "hi")], generator=stub_generator)

    @pytest.mark.asyncio
    async def test_hung_backend_times_out(self):
        class Hung:
            name = "hung"
            model = "h"

            async def generate(self, messages, options):
                await asyncio.sleep(10)

        with patch("exec_brief.config.settings.UPSTREAM_TIMEOUT_SECONDS", 0.01):
            with pytest.raises(UpstreamTimeoutError):
                await llm.generate_text([Message("user", "hi")], generator=Hung())

    @pytest.mark.asyncio
    async def test_no_backend_configured(self):
        with patch.object(llm, "_default_generator", None), \
             patch("exec_brief.config.settings.LLM_PROVIDER", "gemini"), \
             patch("exec_brief.config.settings.GEMINI_API_KEY", ""):
            with pytest.raises(LLMConfigError):
                await llm.generate_text([Message("user", "hi")])


class TestGenerateEmailDraft:
    @pytest.mark.asyncio
    async def test_tone_and_temperature(self, stub_generator):
        stub_generator.reply = "Thanks, Ann."
        draft = await llm.generate_email_draft("Ann: can we meet?", "formal", stub_generator)

        assert draft == "Thanks, Ann."
        messages, options = stub_generator.calls[0]
        assert options.temperature == 0.8
        assert "formal" in messages[0].content
        assert "Ann: can we meet?" in messages[1].content
        assert "3 subject line options" in messages[1].content

    @pytest.mark.asyncio
    async def test_unknown_tone(self, stub_generator):
        with pytest.raises(ValueError):
            await llm.generate_email_draft("ctx", "sarcastic", stub_generator)
