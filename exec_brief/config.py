"""
Executive Brief: Centralized configuration.

Loads all settings from .env. Nothing is required at startup: each
integration checks its own credentials when it is first used, so a missing
Trello token never stops the Gmail side of the dashboard from working.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from exec_brief/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # LLM: provider-agnostic (gemini, openai, anthropic, cohere)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    GEMINI_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    ANTHROPIC_API_KEY: str = ""
    COHERE_API_KEY: str = ""

    # Google OAuth (Gmail + Calendar)
    GOOGLE_OAUTH_CLIENT_ID: str = ""
    GOOGLE_OAUTH_CLIENT_SECRET: str = ""

    # Trello
    TRELLO_API_KEY: str = ""
    TRELLO_TOKEN: str = ""

    # SQLite
    DATABASE_PATH: str = "data/exec_brief.db"

    # Single default account
    DEFAULT_USER_EMAIL: str = "owner@example.com"
    DEFAULT_USER_NAME: str = "Owner"
    TIMEZONE: str = "America/New_York"
    DEFAULT_WORKDAY_START: str = "08:00"
    DEFAULT_WORKDAY_END: str = "16:00"

    # Outbound calls (Gmail, Calendar, Trello, LLM)
    UPSTREAM_TIMEOUT_SECONDS: float = 20.0

    # HTTP server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 5000

    # Scheduled summaries
    SCHEDULER_ENABLED: bool = True

    @field_validator("API_PORT", mode="before")
    @classmethod
    def parse_port(cls, v: str | int) -> int:
        return int(v)

    @field_validator("UPSTREAM_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def parse_timeout(cls, v: str | float) -> float:
        return float(v)

    @field_validator("SCHEDULER_ENABLED", mode="before")
    @classmethod
    def parse_flag(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("1", "true", "yes", "on")


def _load_settings() -> Settings:
    """Load settings from environment."""
    return Settings(
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        GEMINI_API_KEY=os.getenv("GEMINI_API_KEY", ""),
        OPENAI_API_KEY=os.getenv("OPENAI_API_KEY", ""),
        ANTHROPIC_API_KEY=os.getenv("ANTHROPIC_API_KEY", ""),
        COHERE_API_KEY=os.getenv("COHERE_API_KEY", ""),
        GOOGLE_OAUTH_CLIENT_ID=os.getenv("GOOGLE_OAUTH_CLIENT_ID", ""),
        GOOGLE_OAUTH_CLIENT_SECRET=os.getenv("GOOGLE_OAUTH_CLIENT_SECRET", ""),
        TRELLO_API_KEY=os.getenv("TRELLO_API_KEY", ""),
        TRELLO_TOKEN=os.getenv("TRELLO_TOKEN", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/exec_brief.db"),
        DEFAULT_USER_EMAIL=os.getenv("DEFAULT_USER_EMAIL", "owner@example.com"),
        DEFAULT_USER_NAME=os.getenv("DEFAULT_USER_NAME", "Owner"),
        TIMEZONE=os.getenv("TIMEZONE", "America/New_York"),
        DEFAULT_WORKDAY_START=os.getenv("DEFAULT_WORKDAY_START", "08:00"),
        DEFAULT_WORKDAY_END=os.getenv("DEFAULT_WORKDAY_END", "16:00"),
        UPSTREAM_TIMEOUT_SECONDS=os.getenv("UPSTREAM_TIMEOUT_SECONDS", "20"),
        API_HOST=os.getenv("API_HOST", "0.0.0.0"),
        API_PORT=os.getenv("API_PORT", "5000"),
        SCHEDULER_ENABLED=os.getenv("SCHEDULER_ENABLED", "true"),
    )


# Singleton: imported by all other modules as:
#   from exec_brief.config import settings
settings = _load_settings()
