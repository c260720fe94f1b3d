"""Append-only audit trail for guarded GitHub operations."""

import json
import re
import threading
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .config import AuditConfig
from .governance.models import DecisionOutcome

REDACTED = "[REDACTED]"
AUDIT_FILENAME = "audit.jsonl"

# Classic tokens (ghp_, gho_, ghu_, ghs_, ghr_) and fine-grained PATs
TOKEN_PATTERNS = (
    re.compile(r"gh[pousr]_[A-Za-z0-9]{36,}"),
    re.compile(r"github_pat_[A-Za-z0-9_]{20,}"),
)


class AuditOutcome(str, Enum):
    """Whether the guarded operation succeeded."""

    SUCCESS = "success"
    FAILURE = "failure"


def redact(text: str) -> str:
    """Replace GitHub credential-shaped substrings with a placeholder."""
    for pattern in TOKEN_PATTERNS:
        text = pattern.sub(REDACTED, text)
    return text


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class AuditEntry:
    """
    One guarded invocation.

    Attributes:
        timestamp: ISO 8601 UTC time the entry was created
        session_id: Session that requested the operation
        action: Operation identifier (e.g. "pr.create")
        actor: Identity performing the call
        repo: Target ``owner/repo`` slug
        backend: Backend identifier (always "github" here)
        decision: Policy outcome
        outcome: Whether the operation succeeded
        duration_ms: Wall time spent in the guard
        error: Failure text, redacted before storage
    """

    timestamp: str
    session_id: str
    action: str
    actor: str
    repo: str
    backend: str
    decision: DecisionOutcome
    outcome: AuditOutcome
    duration_ms: int
    error: Optional[str] = None

    def to_dict(self) -> dict:
        record = asdict(self)
        record["decision"] = self.decision.value
        record["outcome"] = self.outcome.value
        if self.error is None:
            del record["error"]
        return record


class AuditLogger:
    """
    In-memory append-only audit log.

    Features:
    - Redaction of the ``error`` field at write time (other fields untouched)
    - Snapshot reads that cannot mutate the log
    - Optional JSON Lines sink when a directory is configured
    - Thread-safe append and snapshot
    """

    def __init__(self, config: Optional[AuditConfig] = None):
        self.config = config or AuditConfig()
        self._entries: List[AuditEntry] = []
        self._lock = threading.Lock()
        self.log_path: Optional[Path] = None
        if self.config.directory:
            directory = Path(self.config.directory).expanduser()
            directory.mkdir(parents=True, exist_ok=True)
            self.log_path = directory / AUDIT_FILENAME

    def log(self, entry: AuditEntry) -> None:
        """
        Append a redacted copy of the entry.

        Args:
            entry: Entry to record; the caller's object is not modified
        """
        if not self.config.enabled:
            return

        safe_entry = entry
        if entry.error is not None:
            safe_entry = replace(entry, error=redact(entry.error))

        with self._lock:
            self._entries.append(safe_entry)
            if self.log_path is not None:
                self._write_line(safe_entry)

    def _write_line(self, entry: AuditEntry) -> None:
        json_line = json.dumps(entry.to_dict(), ensure_ascii=False)
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json_line + "\n")
        except OSError as e:
            # Sink failures are logged; the in-memory entry is kept
            logger.error(f"Failed to write audit entry to {self.log_path}: {e}")

    def entries(self) -> List[AuditEntry]:
        """Return a copy of all entries in append order."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
