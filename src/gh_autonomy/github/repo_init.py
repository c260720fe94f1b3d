"""Initial commit for freshly created repositories (README.md + .gitignore)."""

from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote

from loguru import logger

from .transport import AuthMode, GitHubHttpTransport, GitHubRequest, TransportResult

DEFAULT_BRANCH = "main"
INITIAL_COMMIT_MESSAGE = "Initial commit"

DEFAULT_GITIGNORE = """\
# Dependencies
node_modules/
.venv/
venv/

# Build outputs
dist/
build/
out/
*.egg-info/

# Environment
.env
.env.local
.env.*.local

# IDE
.idea/
.vscode/
*.swp
*.swo

# OS
.DS_Store
Thumbs.db

# Logs
*.log

# Testing
coverage/
.coverage
.pytest_cache/

# Cache
.cache/
__pycache__/
"""


@dataclass(frozen=True)
class StarterFile:
    path: str
    content: str


@dataclass
class InitialCommitResult:
    ok: bool
    commit_sha: Optional[str] = None
    error: Optional[str] = None


def _describe(result: TransportResult) -> str:
    if result.error is not None:
        return f"{result.status} {result.error.message}".strip()
    return str(result.status)


def default_gitignore() -> str:
    return DEFAULT_GITIGNORE


async def fetch_gitignore_template(
    transport: GitHubHttpTransport, template_name: str
) -> Optional[str]:
    """
    Fetch a gitignore template body from GitHub.

    Returns:
        Template source, or None if the template could not be fetched
    """
    result = await transport.request(
        GitHubRequest(
            path=f"/gitignore/templates/{quote(template_name, safe='')}",
            auth_mode=AuthMode.NONE,
        )
    )
    if not result.ok or not isinstance(result.data, dict):
        logger.warning(
            f"Failed to fetch gitignore template '{template_name}': {_describe(result)}"
        )
        return None
    return result.data.get("source")


async def _post_sha(
    transport: GitHubHttpTransport, path: str, body: dict, step: str
) -> tuple[Optional[str], Optional[str]]:
    """POST a git data object and return (sha, error)."""
    result = await transport.request(
        GitHubRequest(path=path, method="POST", body=body, auth_mode=AuthMode.TOKEN)
    )
    if not result.ok:
        return None, f"Failed to create {step}: {_describe(result)}"
    sha = result.data.get("sha") if isinstance(result.data, dict) else None
    if not sha:
        return None, f"Failed to create {step}: response had no sha"
    return sha, None


async def create_initial_commit(
    transport: GitHubHttpTransport,
    owner: str,
    repo: str,
    files: List[StarterFile],
    branch: str = DEFAULT_BRANCH,
    message: str = INITIAL_COMMIT_MESSAGE,
) -> InitialCommitResult:
    """
    Create the first commit of an empty repository through the Git Data API.

    Steps: one blob per file, a tree, a parentless commit, then the branch ref.
    Stops at the first failing step.
    """
    base = f"/repos/{owner}/{repo}/git"

    tree_entries = []
    for starter in files:
        sha, error = await _post_sha(
            transport,
            f"{base}/blobs",
            {"content": starter.content, "encoding": "utf-8"},
            "blob",
        )
        if error:
            return InitialCommitResult(ok=False, error=error)
        tree_entries.append(
            {"path": starter.path, "mode": "100644", "type": "blob", "sha": sha}
        )

    tree_sha, error = await _post_sha(transport, f"{base}/trees", {"tree": tree_entries}, "tree")
    if error:
        return InitialCommitResult(ok=False, error=error)

    commit_sha, error = await _post_sha(
        transport,
        f"{base}/commits",
        {"message": message, "tree": tree_sha, "parents": []},
        "commit",
    )
    if error:
        return InitialCommitResult(ok=False, error=error)

    ref_result = await transport.request(
        GitHubRequest(
            path=f"{base}/refs",
            method="POST",
            body={"ref": f"refs/heads/{branch}", "sha": commit_sha},
            auth_mode=AuthMode.TOKEN,
        )
    )
    if not ref_result.ok:
        return InitialCommitResult(ok=False, error=f"Failed to create ref: {_describe(ref_result)}")

    return InitialCommitResult(ok=True, commit_sha=commit_sha)


async def create_starter_set(
    transport: GitHubHttpTransport,
    owner: str,
    repo: str,
    description: Optional[str] = None,
    gitignore_template: Optional[str] = None,
) -> InitialCommitResult:
    """Commit README.md and .gitignore to ``main``."""
    readme = f"# {repo}\n\n{description or 'A new repository.'}\n"

    gitignore = None
    if gitignore_template:
        gitignore = await fetch_gitignore_template(transport, gitignore_template)

    files = [
        StarterFile(path="README.md", content=readme),
        StarterFile(path=".gitignore", content=gitignore or default_gitignore()),
    ]
    return await create_initial_commit(transport, owner, repo, files)
