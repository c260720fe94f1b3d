"""HTTP transport for the GitHub REST API."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

import httpx
from loguru import logger

from ..config import Config
from .auth import CredentialProvider

QueryValue = Union[str, int, bool, None]


class AuthMode(str, Enum):
    """Which credential a request carries."""

    APP = "app"
    TOKEN = "token"
    NONE = "none"


@dataclass(frozen=True)
class GitHubRequest:
    """
    Transport-level request.

    Attributes:
        path: API path starting with "/"
        method: HTTP method
        query: Query parameters; None values are dropped
        headers: Extra headers, applied after the defaults
        body: JSON body; omitted when None
        auth_mode: app (installation token), token (static token) or none
    """

    path: str
    method: str = "GET"
    query: Dict[str, QueryValue] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    auth_mode: AuthMode = AuthMode.NONE


@dataclass
class ErrorInfo:
    """Failure details; code is set for failures produced before any HTTP call."""

    message: str
    documentation_url: Optional[str] = None
    code: Optional[str] = None
    repo: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass
class TransportResult:
    """
    Uniform result shape.

    ``{"ok": True[, "data": ...]}`` on success,
    ``{"ok": False[, "status": n], "error": {...}}`` on failure.
    """

    ok: bool
    data: Any = None
    status: Optional[int] = None
    error: Optional[ErrorInfo] = None
    warning: Optional[str] = None

    @classmethod
    def success(cls, data: Any = None) -> "TransportResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(
        cls,
        message: str,
        status: Optional[int] = None,
        documentation_url: Optional[str] = None,
        code: Optional[str] = None,
        repo: Optional[str] = None,
    ) -> "TransportResult":
        return cls(
            ok=False,
            status=status,
            error=ErrorInfo(
                message=message,
                documentation_url=documentation_url,
                code=code,
                repo=repo,
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"ok": self.ok}
        if self.data is not None:
            result["data"] = self.data
        if self.status is not None:
            result["status"] = self.status
        if self.error is not None:
            result["error"] = self.error.to_dict()
        if self.warning is not None:
            result["warning"] = self.warning
        return result


def build_params(query: Optional[Dict[str, QueryValue]]) -> Dict[str, str]:
    """Query parameters for httpx, skipping None values."""
    params: Dict[str, str] = {}
    for key, value in (query or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        params[key] = str(value)
    return params


def parse_response(status: int, text: str) -> TransportResult:
    """
    Normalize an HTTP response into a TransportResult.

    Non-2xx bodies are read as ``{message, documentation_url}`` JSON, falling
    back to the raw text. 2xx bodies are JSON when they parse, raw text when
    they don't, and absent when empty.
    """
    if not 200 <= status < 300:
        parsed: Any = None
        try:
            parsed = json.loads(text)
        except ValueError:
            pass

        if isinstance(parsed, dict):
            message = parsed.get("message") or text
            documentation_url = parsed.get("documentation_url")
        else:
            message, documentation_url = text, None

        return TransportResult.failure(
            message=str(message),
            status=status,
            documentation_url=documentation_url,
        )

    if not text:
        return TransportResult.success()

    try:
        return TransportResult.success(json.loads(text))
    except ValueError:
        return TransportResult.success(text)


class GitHubHttpTransport:
    """
    Perform GitHub API requests with the credential the request asks for.

    HTTP-level failures are returned as ``ok=False`` results. Credential
    failures (ConfigurationError, ExchangeError) and network errors raised
    by httpx propagate to the caller.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            credentials: Provider owning the installation token cache
            client: Shared HTTP client (a short-lived one is opened per call if None)
        """
        self.credentials = credentials
        self._client = client

    def build_url(self, request: GitHubRequest) -> str:
        return f"{self.credentials.base_url()}{request.path}"

    async def _headers(self, request: GitHubRequest) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": Config.GITHUB_API_VERSION,
            "User-Agent": Config.USER_AGENT,
            **request.headers,
        }

        if request.auth_mode == AuthMode.APP:
            token = await self.credentials.installation_token()
            headers["Authorization"] = f"Bearer {token}"
        elif request.auth_mode == AuthMode.TOKEN:
            token = self.credentials.token_for_read().token
            # Without a token the call proceeds anonymously
            if token:
                headers["Authorization"] = f"Bearer {token}"

        return headers

    async def request(self, request: GitHubRequest) -> TransportResult:
        """
        Send a request and normalize the response.

        Args:
            request: Request description

        Returns:
            TransportResult (never raises for non-2xx responses)
        """
        url = self.build_url(request)
        kwargs: Dict[str, Any] = {
            "headers": await self._headers(request),
            "params": build_params(request.query),
            "json": request.body,
        }

        logger.debug(f"GitHub {request.method} {request.path} (auth={request.auth_mode.value})")

        if self._client is not None:
            response = await self._client.request(request.method, url, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=Config.HTTP_TIMEOUT) as client:
                response = await client.request(request.method, url, **kwargs)

        result = parse_response(response.status_code, response.text)
        if not result.ok:
            logger.warning(
                f"GitHub {request.method} {request.path} failed: "
                f"{response.status_code} {result.error.message}"
            )
        return result
