"""Runtime context helpers for tool invocation."""

from dataclasses import dataclass
from typing import Any, Optional

ANONYMOUS_SESSION = "anonymous"


@dataclass(frozen=True)
class RunContext:
    """Carries session metadata for a tool invocation."""

    session_id: str


def build_run_context(ctx: Optional[Any]) -> RunContext:
    """
    Build a RunContext from the FastMCP Context.

    The session id is treated as an opaque string; a missing context or
    session id maps to a fixed anonymous session so grants never leak
    between identified sessions.
    """
    session_value = getattr(ctx, "session_id", None) if ctx is not None else None
    return RunContext(session_id=str(session_value) if session_value else ANONYMOUS_SESSION)
