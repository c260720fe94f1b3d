"""Session-scoped approval ledger for write operations.

Grants are created by an explicit allow call, never expire, and live only in
process memory. There is no revocation: a grant lasts until the process exits.
"""

import threading
from typing import Set

from loguru import logger

from .models import PolicyRequest

REPO_WIDE_ACTION = "*"


class ApprovalLedger:
    """
    In-memory set of session-scoped grants.

    Two grant shapes:
    - specific: (session, action, owner/repo)
    - repo-wide: (session, "*", owner/repo), covering every action on the repo
    """

    def __init__(self):
        self._grants: Set[str] = set()
        self._lock = threading.Lock()

    @staticmethod
    def _key(session_id: str, action: str, owner: str, repo: str) -> str:
        return f"{session_id}:{action}:{owner}/{repo}"

    def approve(self, session_id: str, request: PolicyRequest) -> None:
        """Grant one action on one repository for a session."""
        key = self._key(
            session_id, request.action, request.resource.owner, request.resource.repo
        )
        with self._lock:
            self._grants.add(key)
        logger.info(
            f"Approved {request.action} on {request.resource.slug} for session {session_id}"
        )

    def approve_repo(self, session_id: str, owner: str, repo: str) -> None:
        """Grant every action on a repository for a session."""
        key = self._key(session_id, REPO_WIDE_ACTION, owner, repo)
        with self._lock:
            self._grants.add(key)
        logger.info(f"Approved all write actions on {owner}/{repo} for session {session_id}")

    def is_approved(self, session_id: str, request: PolicyRequest) -> bool:
        """Check the specific-action grant, then the repo-wide grant."""
        owner, repo = request.resource.owner, request.resource.repo
        specific = self._key(session_id, request.action, owner, repo)
        repo_wide = self._key(session_id, REPO_WIDE_ACTION, owner, repo)
        with self._lock:
            return specific in self._grants or repo_wide in self._grants

    def __len__(self) -> int:
        with self._lock:
            return len(self._grants)
