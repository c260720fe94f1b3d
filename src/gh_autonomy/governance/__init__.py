"""Governance: repository access policy and session approvals."""

from .approval import ApprovalLedger
from .models import (
    AccessDecision,
    Capability,
    DecisionOutcome,
    PolicyRequest,
    Resource,
    ResourceType,
)
from .policy import PolicyEngine, matches_pattern

__all__ = [
    "AccessDecision",
    "ApprovalLedger",
    "Capability",
    "DecisionOutcome",
    "PolicyEngine",
    "PolicyRequest",
    "Resource",
    "ResourceType",
    "matches_pattern",
]
