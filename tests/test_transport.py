"""Tests for the GitHub HTTP transport and response normalization."""

import json

import httpx
import pytest

from gh_autonomy.config import AuthConfig
from gh_autonomy.github.auth import ConfigurationError, CredentialProvider
from gh_autonomy.github.transport import (
    AuthMode,
    GitHubHttpTransport,
    GitHubRequest,
    build_params,
    parse_response,
)


def _transport(auth: AuthConfig, http_client, clock=None) -> GitHubHttpTransport:
    kwargs = {"clock": clock} if clock is not None else {}
    return GitHubHttpTransport(CredentialProvider(auth, client=http_client, **kwargs), client=http_client)


@pytest.mark.asyncio
async def test_json_success_round_trip(handler, http_client):
    handler.routes["GET /thing"] = (200, {"a": 1})
    result = await _transport(AuthConfig(), http_client).request(GitHubRequest(path="/thing"))

    assert result.to_dict() == {"ok": True, "data": {"a": 1}}


@pytest.mark.asyncio
async def test_empty_success_has_no_data(handler, http_client):
    handler.routes["DELETE /thing"] = (204, "")
    result = await _transport(AuthConfig(), http_client).request(
        GitHubRequest(path="/thing", method="DELETE")
    )

    assert result.to_dict() == {"ok": True}
    assert "data" not in result.to_dict()


@pytest.mark.asyncio
async def test_not_found_round_trip(handler, http_client):
    handler.routes["GET /missing"] = (404, {"message": "Not Found"})
    result = await _transport(AuthConfig(), http_client).request(GitHubRequest(path="/missing"))

    assert result.to_dict() == {"ok": False, "status": 404, "error": {"message": "Not Found"}}


def test_error_with_documentation_url():
    body = json.dumps({"message": "Bad credentials", "documentation_url": "https://docs.github.com/rest"})
    result = parse_response(401, body)

    assert result.to_dict() == {
        "ok": False,
        "status": 401,
        "error": {"message": "Bad credentials", "documentation_url": "https://docs.github.com/rest"},
    }


def test_non_json_error_falls_back_to_text():
    result = parse_response(502, "<html>Bad Gateway</html>")
    assert result.status == 502
    assert result.error.message == "<html>Bad Gateway</html>"


def test_non_json_success_returns_text():
    result = parse_response(200, "plain text body")
    assert result.to_dict() == {"ok": True, "data": "plain text body"}


def test_query_drops_none_values():
    assert build_params({"q": "repo:acme/widgets", "ref": None, "page": 2}) == {
        "q": "repo:acme/widgets",
        "page": "2",
    }
    assert build_params({"ref": None}) == {}
    assert build_params(None) == {}
    assert build_params({"draft": True}) == {"draft": "true"}


@pytest.mark.asyncio
async def test_query_sent_as_params(handler, http_client):
    handler.routes["GET /search/issues"] = (200, {"items": []})
    transport = _transport(AuthConfig(), http_client)

    await transport.request(
        GitHubRequest(path="/search/issues", query={"q": "repo:acme/widgets is:open", "page": None})
    )

    [request] = handler.requests
    assert dict(request.url.params) == {"q": "repo:acme/widgets is:open"}
    assert request.content == b""


@pytest.mark.asyncio
async def test_standard_headers_and_json_body(handler, http_client):
    handler.routes["POST /repos/acme/widgets/issues"] = (201, {"number": 7})
    transport = _transport(AuthConfig(), http_client)

    await transport.request(
        GitHubRequest(
            path="/repos/acme/widgets/issues",
            method="POST",
            query={"unused": None},
            headers={"X-Custom": "yes"},
            body={"title": "Bug"},
        )
    )

    [request] = handler.requests
    assert str(request.url) == "https://api.github.com/repos/acme/widgets/issues"
    assert request.headers["Accept"] == "application/vnd.github+json"
    assert request.headers["X-GitHub-Api-Version"] == "2022-11-28"
    assert request.headers["User-Agent"] == "gh-autonomy"
    assert request.headers["X-Custom"] == "yes"
    assert "Authorization" not in request.headers
    assert json.loads(request.content) == {"title": "Bug"}
    assert request.headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_token_mode_attaches_static_token(handler, http_client):
    handler.routes["GET /user"] = (200, {"login": "octo"})
    transport = _transport(AuthConfig(github_token="ghp_static"), http_client)

    await transport.request(GitHubRequest(path="/user", auth_mode=AuthMode.TOKEN))

    assert handler.requests[0].headers["Authorization"] == "Bearer ghp_static"


@pytest.mark.asyncio
async def test_token_mode_without_token_goes_anonymous(handler, http_client):
    handler.routes["GET /search/repositories"] = (200, {"total_count": 0, "items": []})
    transport = _transport(AuthConfig(), http_client)

    result = await transport.request(
        GitHubRequest(path="/search/repositories", query={"q": "x"}, auth_mode=AuthMode.TOKEN)
    )

    assert result.ok
    assert "Authorization" not in handler.requests[0].headers


@pytest.mark.asyncio
async def test_none_mode_never_sends_credentials(handler, http_client):
    handler.routes["GET /gitignore/templates/Python"] = (200, {"source": "*.pyc"})
    transport = _transport(AuthConfig(github_token="ghp_static"), http_client)

    await transport.request(GitHubRequest(path="/gitignore/templates/Python"))

    assert "Authorization" not in handler.requests[0].headers


@pytest.mark.asyncio
async def test_app_mode_uses_installation_token(app_auth, handler, http_client, clock, exchange_route):
    handler.routes["POST /app/installations/67890/access_tokens"] = exchange_route("ghs_install")
    handler.routes["POST /repos/acme/widgets/pulls"] = (201, {"number": 3})
    transport = _transport(app_auth, http_client, clock)

    result = await transport.request(
        GitHubRequest(path="/repos/acme/widgets/pulls", method="POST", body={}, auth_mode=AuthMode.APP)
    )

    assert result.ok
    [api_call] = handler.calls("POST", "/repos/acme/widgets/pulls")
    assert api_call.headers["Authorization"] == "Bearer ghs_install"


@pytest.mark.asyncio
async def test_app_mode_without_app_credentials_raises(handler, http_client):
    transport = _transport(AuthConfig(github_token="ghp_static"), http_client)

    with pytest.raises(ConfigurationError):
        await transport.request(GitHubRequest(path="/x", auth_mode=AuthMode.APP))
    assert handler.requests == []


@pytest.mark.asyncio
async def test_base_url_override(handler, http_client):
    handler.routes["GET /api/v3/meta"] = (200, {})
    transport = _transport(AuthConfig(base_url="https://ghe.example.com/api/v3"), http_client)

    result = await transport.request(GitHubRequest(path="/meta"))

    assert result.ok
    assert handler.requests[0].url.host == "ghe.example.com"


@pytest.mark.asyncio
async def test_network_errors_propagate():
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(boom))
    transport = _transport(AuthConfig(), client)

    with pytest.raises(httpx.ConnectError):
        await transport.request(GitHubRequest(path="/x"))
