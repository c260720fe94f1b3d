"""Request and decision models for repository access control."""

from dataclasses import dataclass
from enum import Enum


class Capability(str, Enum):
    """Coarse read/write classification of an operation."""

    READ = "read"
    WRITE = "write"


class ResourceType(str, Enum):
    """Kind of GitHub object an operation targets."""

    REPO = "repo"
    ISSUE = "issue"
    PR = "pr"


class DecisionOutcome(str, Enum):
    """Result of policy evaluation."""

    ALLOWED = "allowed"
    DENIED = "denied"
    NEEDS_APPROVAL = "needs_approval"


@dataclass(frozen=True)
class Resource:
    """The (owner, repo, type) triple an operation targets."""

    owner: str
    repo: str
    type: ResourceType = ResourceType.REPO

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class PolicyRequest:
    """
    A single requested operation.

    Attributes:
        action: Dotted operation identifier (e.g. "issue.create")
        capability: Read or write
        resource: Target repository and object type
    """

    action: str
    capability: Capability
    resource: Resource


@dataclass(frozen=True)
class AccessDecision:
    """Policy outcome with a human-readable reason."""

    outcome: DecisionOutcome
    reason: str

    @property
    def allowed(self) -> bool:
        return self.outcome == DecisionOutcome.ALLOWED
