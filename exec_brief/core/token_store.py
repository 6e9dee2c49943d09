"""
Executive Brief: Token Store.

Hands out a currently valid access token for a provider, refreshing and
persisting it when the stored one has expired. Refreshes are serialized
per provider: callers that queue behind an in-flight refresh re-read the
row and reuse the new token instead of refreshing a second time.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from exec_brief.core.deadline import UpstreamTimeoutError, with_deadline

if TYPE_CHECKING:
    from exec_brief.data.db import TokenDB
    from exec_brief.data.models import OAuthToken
    from exec_brief.integrations.google_auth import OAuthTokenResult

logger = logging.getLogger(__name__)

Refresher = Callable[[str], "OAuthTokenResult"]


class NotConnectedError(Exception):
    """Raised when no credentials are stored for a provider."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            f"{provider.capitalize()} not connected. "
            "Please authorize at /api/oauth/authorize"
        )
        self.provider = provider


class TokenRefreshError(Exception):
    """Raised when an expired token cannot be refreshed."""


def _default_refreshers() -> dict[str, Refresher]:
    from exec_brief.integrations.google_auth import refresh_access_token

    return {"google": refresh_access_token}


class TokenStore:
    """Valid-access-token supplier backed by the oauth_tokens table."""

    def __init__(
        self,
        token_db: TokenDB,
        user_id: int | None = None,
        refreshers: dict[str, Refresher] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._db = token_db
        self._user_id = user_id
        self._refreshers = refreshers if refreshers is not None else _default_refreshers()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks: dict[str, asyncio.Lock] = {}

    async def _load(self, provider: str) -> OAuthToken:
        token = await asyncio.to_thread(self._db.get_token, provider, self._user_id)
        if token is None:
            raise NotConnectedError(provider)
        return token

    async def get_valid_access_token(self, provider: str = "google") -> str:
        """Return a bearer token for provider, refreshing it if expired.

        Raises NotConnectedError when nothing is stored and
        TokenRefreshError when the refresh is rejected. No retries.
        """
        token = await self._load(provider)
        if not token.is_expired(self._clock()):
            return token.access_token

        lock = self._locks.setdefault(provider, asyncio.Lock())
        async with lock:
            token = await self._load(provider)
            if not token.is_expired(self._clock()):
                return token.access_token
            return await self._refresh(token)

    async def _refresh(self, token: OAuthToken) -> str:
        provider = token.provider
        if not token.refresh_token:
            raise TokenRefreshError(f"No refresh token stored for {provider}; re-authorize")

        refresher = self._refreshers.get(provider)
        if refresher is None:
            raise TokenRefreshError(f"No refresh flow for provider {provider!r}")

        logger.info("Access token for %s expired, refreshing...", provider)
        try:
            result = await with_deadline(
                asyncio.to_thread(refresher, token.refresh_token),
                f"{provider} token refresh",
            )
        except UpstreamTimeoutError:
            raise
        except Exception as exc:
            logger.error("Token refresh for %s failed: %s", provider, exc)
            raise TokenRefreshError(f"Failed to refresh {provider} token: {exc}") from exc

        await asyncio.to_thread(
            self._db.update_access_token, token.id, result.access_token, result.expires_at,
        )
        return result.access_token
