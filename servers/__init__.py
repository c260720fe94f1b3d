"""Server tools package - GitHub tools."""

from .github_tools import GitHubTools, create_github_server

__all__ = ["GitHubTools", "create_github_server"]
