"""Repository access policy engine."""

from typing import Iterable

from ..config import PolicyConfig, PolicyMode
from .approval import ApprovalLedger
from .models import AccessDecision, Capability, DecisionOutcome, PolicyRequest


def matches_pattern(slug: str, pattern: str) -> bool:
    """
    Match an ``owner/repo`` slug against a policy pattern.

    Pattern forms:
    - ``*``: any repository
    - ``owner/*``: any repository under owner
    - ``owner/repo``: exact match
    """
    if pattern == "*":
        return True
    if pattern.endswith("/*"):
        return slug.startswith(pattern[:-1])
    return slug == pattern


def matches_any(slug: str, patterns: Iterable[str]) -> bool:
    return any(matches_pattern(slug, pattern) for pattern in patterns)


class PolicyEngine:
    """
    Classify requested operations as allowed, denied or pending approval.

    Evaluation order (first match wins):
    ┌───┬──────────────────────────────────┬────────────────┐
    │ 1 │ capability == read               │ allowed        │
    │ 2 │ slug matches non-empty denylist  │ denied         │
    │ 3 │ slug matches allowlist           │ allowed        │
    │ 4 │ session approval in ledger       │ allowed        │
    │ 5 │ otherwise                        │ needs_approval │
    └───┴──────────────────────────────────┴────────────────┘

    The policy mode is carried on the config but does not change evaluation.
    """

    def __init__(self, config: PolicyConfig, approvals: ApprovalLedger):
        self.config = config
        self.approvals = approvals

    @property
    def mode(self) -> PolicyMode:
        return self.config.mode

    def evaluate(self, request: PolicyRequest, session_id: str) -> AccessDecision:
        """
        Evaluate a request for a session.

        Args:
            request: Operation to classify
            session_id: Opaque session identifier (ledger key)

        Returns:
            AccessDecision with outcome and reason
        """
        if request.capability == Capability.READ:
            return AccessDecision(
                outcome=DecisionOutcome.ALLOWED,
                reason="Read operations are always allowed",
            )

        slug = request.resource.slug

        if self.config.denylist and matches_any(slug, self.config.denylist):
            return AccessDecision(
                outcome=DecisionOutcome.DENIED,
                reason=f"Repository {slug} is explicitly denied",
            )

        if matches_any(slug, self.config.allowlist):
            return AccessDecision(
                outcome=DecisionOutcome.ALLOWED,
                reason=f"Repository {slug} is on the allowlist",
            )

        if self.approvals.is_approved(session_id, request):
            return AccessDecision(
                outcome=DecisionOutcome.ALLOWED,
                reason="Operation approved for this session",
            )

        return AccessDecision(
            outcome=DecisionOutcome.NEEDS_APPROVAL,
            reason=(
                f"Write operation to {slug} requires explicit approval or allowlist entry"
            ),
        )
