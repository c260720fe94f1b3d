"""gh-autonomy - governed GitHub access for autonomous agents."""

__version__ = "0.1.0"

from .app import GitHubDeps, build_deps
from .context import RunContext, build_run_context

__all__ = ["GitHubDeps", "RunContext", "build_deps", "build_run_context", "__version__"]
