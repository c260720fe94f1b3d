"""Credential resolution for GitHub API calls.

Two credential paths:
- a static token (personal access token) for token-mode calls
- a GitHub App installation token, minted from a signed JWT and cached
  until shortly before it expires, for app-mode calls
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import httpx
from loguru import logger

from ..config import AuthConfig, Config
from .tokens import generate_app_jwt


class GitHubAuthError(Exception):
    """Base class for credential failures."""


class ConfigurationError(GitHubAuthError):
    """Required credential fields are missing."""


class ExchangeError(GitHubAuthError):
    """The installation token exchange returned a non-success response."""

    def __init__(self, status: int, body: str):
        super().__init__(f"Installation token exchange failed ({status}): {body}")
        self.status = status
        self.body = body


@dataclass(frozen=True)
class ReadToken:
    """Static credential for token-mode calls, or the absence of one."""

    token: Optional[str]
    type: str  # "token" or "none"


@dataclass(frozen=True)
class CachedInstallationToken:
    """Installation token with absolute expiry in epoch milliseconds."""

    token: str
    expires_at_ms: int


def _parse_expires_at(value: str) -> int:
    """Parse GitHub's ISO 8601 ``expires_at`` into epoch milliseconds."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return int(datetime.fromisoformat(value).timestamp() * 1000)


class CredentialProvider:
    """
    Resolve the API base URL and bearer tokens.

    The installation token cache is a single slot owned by this instance.
    Concurrent refreshes may both hit the exchange endpoint; the last writer
    wins and both callers hold a valid token.
    """

    def __init__(
        self,
        config: AuthConfig,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            config: Validated credential configuration
            client: HTTP client for the exchange (a short-lived one is opened per call if None)
            clock: Epoch-seconds time source
        """
        self.config = config
        self._client = client
        self._clock = clock
        self._cached: Optional[CachedInstallationToken] = None

    def base_url(self) -> str:
        return self.config.base_url or Config.GITHUB_API_URL

    def token_for_read(self) -> ReadToken:
        """Return the static token if configured. Never performs I/O."""
        if self.config.github_token:
            return ReadToken(token=self.config.github_token, type="token")
        return ReadToken(token=None, type="none")

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _cached_token(self) -> Optional[str]:
        cached = self._cached
        if cached is None:
            return None
        margin_ms = Config.TOKEN_REFRESH_MARGIN_SECONDS * 1000
        if self._now_ms() < cached.expires_at_ms - margin_ms:
            return cached.token
        return None

    async def installation_token(self) -> str:
        """
        Return a valid installation token, exchanging a new JWT when needed.

        Returns:
            Installation access token

        Raises:
            ConfigurationError: If app_id, installation_id or private_key is missing
            ExchangeError: If GitHub rejects the exchange (cache left unchanged)
        """
        app_id = self.config.app_id
        installation_id = self.config.installation_id
        private_key = self.config.private_key
        if not (app_id and installation_id and private_key):
            raise ConfigurationError(
                "GitHub App credentials are incomplete: app_id, installation_id "
                "and private_key are all required for app-authenticated calls"
            )

        cached = self._cached_token()
        if cached is not None:
            logger.debug("Using cached installation token")
            return cached

        try:
            assertion = generate_app_jwt(app_id, private_key, now=self._clock())
        except ValueError as e:
            raise ConfigurationError(f"Invalid GitHub App private key: {e}") from e

        url = f"{self.base_url()}/app/installations/{installation_id}/access_tokens"
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": Config.GITHUB_API_VERSION,
            "User-Agent": Config.USER_AGENT,
            "Authorization": f"Bearer {assertion}",
        }

        logger.debug(f"Exchanging app JWT for installation {installation_id} token")
        if self._client is not None:
            response = await self._client.post(url, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=Config.HTTP_TIMEOUT) as client:
                response = await client.post(url, headers=headers)

        if not response.is_success:
            logger.warning(
                f"Installation token exchange failed with status {response.status_code}"
            )
            raise ExchangeError(response.status_code, response.text)

        try:
            payload = response.json()
            token = payload["token"]
            expires_at_ms = _parse_expires_at(payload["expires_at"])
        except (ValueError, KeyError, TypeError) as e:
            raise ExchangeError(
                response.status_code, f"Malformed exchange response: {e}"
            ) from e

        self._cached = CachedInstallationToken(token=token, expires_at_ms=expires_at_ms)
        return token
