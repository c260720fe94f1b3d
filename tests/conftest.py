"""Pytest fixtures and test utilities for the gh-autonomy test suite."""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from gh_autonomy.app import build_deps
from gh_autonomy.config import AuthConfig, PluginConfig, PolicyConfig
from gh_autonomy.governance.models import Capability, PolicyRequest, Resource, ResourceType

NOW = 1_700_000_000.0
API = "https://api.github.com"


def iso_z(epoch_seconds: float) -> str:
    """Format epoch seconds the way GitHub returns expires_at."""
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class FakeClock:
    """Mutable epoch-seconds clock."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingHandler:
    """
    httpx.MockTransport handler that records requests and replays routes.

    Routes map "METHOD /path" to a (status, body) tuple or to a callable
    taking the request. Unknown routes return 404.
    """

    def __init__(self, routes: Dict[str, Any] | None = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(f"{request.method} {request.url.path}")
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(route):
            route = route(request)
        status, body = route
        if isinstance(body, (dict, list)):
            return httpx.Response(status, content=json.dumps(body).encode())
        return httpx.Response(status, content=(body or "").encode())


@pytest.fixture
def rsa_private_key_pem() -> str:
    """Fresh PEM-encoded RSA key for GitHub App JWT signing."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def rsa_public_key(rsa_private_key_pem):
    key = serialization.load_pem_private_key(rsa_private_key_pem.encode(), password=None)
    return key.public_key()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def app_auth(rsa_private_key_pem) -> AuthConfig:
    return AuthConfig(
        app_id="12345",
        installation_id="67890",
        private_key=rsa_private_key_pem,
        github_token="ghp_" + "a" * 36,
    )


@pytest.fixture
def exchange_route(clock) -> Callable[[str, float], Any]:
    """Build an installation token exchange route returning a given token."""

    def make(token: str = "ghs_installation", ttl_seconds: float = 3600):
        return lambda request: (
            201,
            {"token": token, "expires_at": iso_z(clock.now + ttl_seconds)},
        )

    return make


@pytest.fixture
def make_deps(http_client):
    """Build the full core around the mock HTTP client."""

    def make(policy: PolicyConfig | None = None, auth: AuthConfig | None = None):
        config = PluginConfig(
            policy=policy or PolicyConfig(),
            auth=auth or AuthConfig(github_token="ghp_" + "b" * 36),
        )
        return build_deps(config, client=http_client)

    return make


def write_request(
    owner: str = "acme",
    repo: str = "widgets",
    action: str = "issue.create",
    resource_type: ResourceType = ResourceType.ISSUE,
) -> PolicyRequest:
    return PolicyRequest(
        action=action,
        capability=Capability.WRITE,
        resource=Resource(owner=owner, repo=repo, type=resource_type),
    )


def read_request(owner: str = "acme", repo: str = "widgets") -> PolicyRequest:
    return PolicyRequest(
        action="issue.list",
        capability=Capability.READ,
        resource=Resource(owner=owner, repo=repo, type=ResourceType.ISSUE),
    )
