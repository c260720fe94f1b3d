"""GitHub tools as a standalone FastMCP server.

Read tools call the transport directly with the static token. Write tools
declare a PolicyRequest and route through GovernanceGuard, which enforces
the repository allow/deny lists and per-session approval:
- github_issue_create, github_issue_comment, github_pr_create
- github_repo_file_put (also refuses CI workflow paths)
- github_repo_create

github_session_allow_repo is the only way to grant approval and must be
called only after the user has explicitly confirmed.
"""

import json
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from fastmcp import Context, FastMCP
from fastmcp.exceptions import ToolError
from loguru import logger

from gh_autonomy.app import GitHubDeps, build_deps
from gh_autonomy.config import Config, ConfigManager, PluginConfig
from gh_autonomy.context import build_run_context
from gh_autonomy.github.repo_init import create_starter_set
from gh_autonomy.github.transport import AuthMode, GitHubRequest, TransportResult
from gh_autonomy.governance.models import (
    Capability,
    PolicyRequest,
    Resource,
    ResourceType,
)

NOT_ALLOWED = "NOT_ALLOWED"
SEARCH_TYPES = ("repositories", "issues", "code")
STATES = ("open", "closed", "all")
NAME_PATTERN = re.compile(r"[A-Za-z0-9._-]+")


def _validate_choice(name: str, value: str, choices: tuple) -> str:
    if value not in choices:
        raise ToolError(f"Invalid {name} '{value}'. Valid values: {', '.join(choices)}")
    return value


def validate_name(field: str, value: str) -> str:
    """
    Require a single GitHub owner or repository name segment.

    Raises:
        ToolError: If the value is empty, "." or "..", or contains other characters
    """
    if value in (".", "..") or not NAME_PATTERN.fullmatch(value):
        raise ToolError(f"Invalid {field} '{value}': expected a single GitHub name")
    return value


def _path_segments(path: str) -> List[str]:
    return [segment for segment in path.replace("\\", "/").split("/") if segment]


def check_write_path(path: str) -> Optional[str]:
    """
    Refuse writes under protected prefixes (CI workflow definitions).

    Applied before policy evaluation; no allowlist entry or approval lifts it.
    Paths containing "." or ".." segments are refused outright, since the
    HTTP client collapses them before the request is sent.

    Returns:
        Reason string if the path is protected, None if the write may proceed
    """
    segments = _path_segments(path)
    if not segments:
        return "File path must not be empty"
    if any(segment in (".", "..") for segment in segments):
        return "File path must not contain '.' or '..' segments"

    lowered = "/".join(segments).lower()
    for prefix in Config.PROTECTED_WRITE_PREFIXES:
        if lowered.startswith(prefix) or lowered == prefix.rstrip("/"):
            return f"Writes under {prefix} are not allowed"
    return None


def repo_path(owner: str, repo: str, *parts: str) -> str:
    """Build ``/repos/{owner}/{repo}/...`` with every segment percent-encoded."""
    segments = [owner, repo, *parts]
    return "/repos/" + "/".join(quote(segment, safe="") for segment in segments)


def contents_path(owner: str, repo: str, path: str) -> str:
    return repo_path(owner, repo, "contents", *_path_segments(path))


class GitHubTools:
    """Tool implementations over the shared governance core."""

    def __init__(self, deps: GitHubDeps):
        self.deps = deps

    @staticmethod
    def _write_request(
        action: str, owner: str, repo: str, resource_type: ResourceType
    ) -> PolicyRequest:
        validate_name("owner", owner)
        validate_name("repo", repo)
        return PolicyRequest(
            action=action,
            capability=Capability.WRITE,
            resource=Resource(owner=owner, repo=repo, type=resource_type),
        )

    async def _read(self, path: str, query: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        result = await self.deps.transport.request(
            GitHubRequest(path=path, query=query or {}, auth_mode=AuthMode.TOKEN)
        )
        return result.to_dict()

    async def _guarded_call(
        self, request: PolicyRequest, session_id: str, github_request: GitHubRequest
    ) -> Dict[str, Any]:
        async def operation() -> TransportResult:
            return await self.deps.transport.request(github_request)

        result = await self.deps.guard.run(request, session_id, operation)
        return result.to_dict()

    # ------------------------------------------------------------------
    # Read tools
    # ------------------------------------------------------------------

    async def search(self, query: str, type: str = "repositories") -> Dict[str, Any]:
        _validate_choice("type", type, SEARCH_TYPES)
        return await self._read(f"/search/{type}", {"q": query})

    async def issue_list(self, owner: str, repo: str, state: str = "open") -> Dict[str, Any]:
        _validate_choice("state", state, STATES)
        validate_name("owner", owner)
        validate_name("repo", repo)
        return await self._read(repo_path(owner, repo, "issues"), {"state": state})

    async def pr_list(self, owner: str, repo: str, state: str = "open") -> Dict[str, Any]:
        _validate_choice("state", state, STATES)
        validate_name("owner", owner)
        validate_name("repo", repo)
        return await self._read(repo_path(owner, repo, "pulls"), {"state": state})

    async def repo_file_get(
        self, owner: str, repo: str, path: str, ref: Optional[str] = None
    ) -> Dict[str, Any]:
        validate_name("owner", owner)
        validate_name("repo", repo)
        if any(segment in (".", "..") for segment in _path_segments(path)):
            raise ToolError("File path must not contain '.' or '..' segments")
        return await self._read(contents_path(owner, repo, path), {"ref": ref})

    # ------------------------------------------------------------------
    # Write tools
    # ------------------------------------------------------------------

    async def issue_create(
        self, session_id: str, owner: str, repo: str, title: str, body: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._guarded_call(
            self._write_request("issue.create", owner, repo, ResourceType.ISSUE),
            session_id,
            GitHubRequest(
                path=repo_path(owner, repo, "issues"),
                method="POST",
                body={"title": title, "body": body},
                auth_mode=AuthMode.APP,
            ),
        )

    async def issue_comment(
        self, session_id: str, owner: str, repo: str, issue_number: int, body: str
    ) -> Dict[str, Any]:
        if issue_number <= 0:
            raise ToolError("issue_number must be a positive integer")
        return await self._guarded_call(
            self._write_request("issue.comment", owner, repo, ResourceType.ISSUE),
            session_id,
            GitHubRequest(
                path=repo_path(owner, repo, "issues", str(issue_number), "comments"),
                method="POST",
                body={"body": body},
                auth_mode=AuthMode.APP,
            ),
        )

    async def pr_create(
        self,
        session_id: str,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._guarded_call(
            self._write_request("pr.create", owner, repo, ResourceType.PR),
            session_id,
            GitHubRequest(
                path=repo_path(owner, repo, "pulls"),
                method="POST",
                body={"title": title, "head": head, "base": base, "body": body},
                auth_mode=AuthMode.APP,
            ),
        )

    async def repo_file_put(
        self,
        session_id: str,
        owner: str,
        repo: str,
        path: str,
        message: str,
        content_base64: str,
        sha: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> Dict[str, Any]:
        reason = check_write_path(path)
        if reason:
            logger.warning(f"Refused write to protected path {owner}/{repo}:{path}")
            return {"ok": False, "error": {"code": NOT_ALLOWED, "message": reason}}

        body = {"message": message, "content": content_base64}
        if sha is not None:
            body["sha"] = sha
        if branch is not None:
            body["branch"] = branch

        return await self._guarded_call(
            self._write_request("repo.file.put", owner, repo, ResourceType.REPO),
            session_id,
            GitHubRequest(
                path=contents_path(owner, repo, path),
                method="PUT",
                body=body,
                auth_mode=AuthMode.APP,
            ),
        )

    async def repo_create(
        self,
        session_id: str,
        name: str,
        description: Optional[str] = None,
        private: bool = True,
        homepage: Optional[str] = None,
        has_issues: bool = True,
        has_projects: bool = False,
        has_wiki: bool = False,
        gitignore_template: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not 1 <= len(name) <= 100:
            raise ToolError("Repository name must be 1-100 characters")

        request = self._write_request("repo.create", "user", name, ResourceType.REPO)
        transport = self.deps.transport

        async def operation() -> TransportResult:
            created = await transport.request(
                GitHubRequest(
                    path="/user/repos",
                    method="POST",
                    body={
                        "name": name,
                        "description": description,
                        "private": private,
                        "homepage": homepage,
                        "has_issues": has_issues,
                        "has_projects": has_projects,
                        "has_wiki": has_wiki,
                        "auto_init": False,
                    },
                    auth_mode=AuthMode.TOKEN,
                )
            )
            if not created.ok or not isinstance(created.data, dict):
                return created

            # The repository exists from here on; initialization problems are warnings
            repo_data = created.data
            try:
                init = await create_starter_set(
                    transport,
                    repo_data["owner"]["login"],
                    repo_data["name"],
                    description,
                    gitignore_template,
                )
                init_error = init.error
            except (KeyError, TypeError) as e:
                init_error = f"unexpected repository response (missing {e})"
            except httpx.HTTPError as e:
                init_error = f"{type(e).__name__}: {e}"

            if init_error is not None:
                logger.warning(f"Repository {name} created but initialization failed: {init_error}")
                return TransportResult(
                    ok=True,
                    data=repo_data,
                    warning=f"Repository created but initialization failed: {init_error}",
                )
            return TransportResult.success(
                {**repo_data, "initialized": True, "default_branch": "main"}
            )

        result = await self.deps.guard.run(request, session_id, operation)
        return result.to_dict()

    # ------------------------------------------------------------------
    # Session approval and status
    # ------------------------------------------------------------------

    def session_allow_repo(self, session_id: str, owner: str, repo: str) -> Dict[str, Any]:
        validate_name("owner", owner)
        validate_name("repo", repo)
        self.deps.approvals.approve_repo(session_id, owner, repo)
        return {
            "ok": True,
            "data": {"approved": True, "repo": f"{owner}/{repo}", "session_id": session_id},
        }

    def status(self) -> Dict[str, Any]:
        config = self.deps.config
        return {
            "ok": True,
            "data": {
                "base_url": self.deps.credentials.base_url(),
                "token_auth": config.auth.github_token is not None,
                "app_auth": config.auth.has_app_credentials,
                "policy_mode": config.policy.mode.value,
                "allowlist_entries": len(config.policy.allowlist),
                "denylist_entries": len(config.policy.denylist),
                "audit_enabled": config.audit.enabled,
                "audit_entries": len(self.deps.audit),
            },
        }


def _json(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, indent=2)


def create_github_server(
    config: Optional[PluginConfig] = None, deps: Optional[GitHubDeps] = None
) -> FastMCP:
    """
    Build the FastMCP server exposing the GitHub tools.

    Args:
        config: Validated config (loaded via ConfigManager if neither argument is given)
        deps: Pre-built core components (tests inject these)

    Returns:
        FastMCP server instance
    """
    if deps is None:
        deps = build_deps(config if config is not None else ConfigManager().load())
    tools = GitHubTools(deps)
    server = FastMCP("GitHubTools")

    @server.tool()
    async def github_search(query: str, type: str = "repositories") -> str:
        """Search GitHub repositories, issues or code (read-only)."""
        return _json(await tools.search(query, type))

    @server.tool()
    async def github_issue_list(owner: str, repo: str, state: str = "open") -> str:
        """List issues in a repository (read-only)."""
        return _json(await tools.issue_list(owner, repo, state))

    @server.tool()
    async def github_pr_list(owner: str, repo: str, state: str = "open") -> str:
        """List pull requests in a repository (read-only)."""
        return _json(await tools.pr_list(owner, repo, state))

    @server.tool()
    async def github_repo_file_get(
        owner: str, repo: str, path: str, ref: Optional[str] = None
    ) -> str:
        """Get file content from a repository (read-only)."""
        return _json(await tools.repo_file_get(owner, repo, path, ref))

    @server.tool()
    async def github_issue_create(
        owner: str, repo: str, title: str, ctx: Context, body: Optional[str] = None
    ) -> str:
        """Create an issue (write; allowlist or per-session approval required)."""
        session_id = build_run_context(ctx).session_id
        return _json(await tools.issue_create(session_id, owner, repo, title, body))

    @server.tool()
    async def github_issue_comment(
        owner: str, repo: str, issue_number: int, body: str, ctx: Context
    ) -> str:
        """Comment on an issue or PR (write; allowlist or per-session approval required)."""
        session_id = build_run_context(ctx).session_id
        return _json(await tools.issue_comment(session_id, owner, repo, issue_number, body))

    @server.tool()
    async def github_pr_create(
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        ctx: Context,
        body: Optional[str] = None,
    ) -> str:
        """Create a pull request (write; allowlist or per-session approval required)."""
        session_id = build_run_context(ctx).session_id
        return _json(await tools.pr_create(session_id, owner, repo, title, head, base, body))

    @server.tool()
    async def github_repo_file_put(
        owner: str,
        repo: str,
        path: str,
        message: str,
        content_base64: str,
        ctx: Context,
        sha: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> str:
        """Create or update a file via the Contents API (write; approval required)."""
        session_id = build_run_context(ctx).session_id
        return _json(
            await tools.repo_file_put(
                session_id, owner, repo, path, message, content_base64, sha, branch
            )
        )

    @server.tool()
    async def github_repo_create(
        name: str,
        ctx: Context,
        description: Optional[str] = None,
        private: bool = True,
        homepage: Optional[str] = None,
        has_issues: bool = True,
        has_projects: bool = False,
        has_wiki: bool = False,
        gitignore_template: Optional[str] = None,
    ) -> str:
        """Create a repository with README.md and .gitignore (write; approval required)."""
        session_id = build_run_context(ctx).session_id
        return _json(
            await tools.repo_create(
                session_id,
                name,
                description,
                private,
                homepage,
                has_issues,
                has_projects,
                has_wiki,
                gitignore_template,
            )
        )

    @server.tool()
    async def github_session_allow_repo(owner: str, repo: str, ctx: Context) -> str:
        """Allow write actions on a repository for this session. Use ONLY after explicit user confirmation."""
        session_id = build_run_context(ctx).session_id
        return _json(tools.session_allow_repo(session_id, owner, repo))

    @server.tool()
    async def github_status() -> str:
        """Report configured credentials and policy (never secrets)."""
        return _json(tools.status())

    return server
