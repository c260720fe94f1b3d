"""Wire the governance core from a validated PluginConfig."""

from dataclasses import dataclass
from typing import Optional

import httpx

from .audit import AuditLogger
from .config import PluginConfig
from .github.auth import CredentialProvider
from .github.transport import GitHubHttpTransport
from .governance.approval import ApprovalLedger
from .governance.policy import PolicyEngine
from .middleware import DEFAULT_ACTOR, GovernanceGuard


@dataclass
class GitHubDeps:
    """Component instances shared by every tool call in one process."""

    config: PluginConfig
    credentials: CredentialProvider
    transport: GitHubHttpTransport
    approvals: ApprovalLedger
    policy: PolicyEngine
    audit: AuditLogger
    guard: GovernanceGuard


def build_deps(
    config: PluginConfig,
    client: Optional[httpx.AsyncClient] = None,
    actor: str = DEFAULT_ACTOR,
) -> GitHubDeps:
    """
    Construct the core once at startup.

    The credential provider (and its token cache) is created here and handed
    to the transport; nothing is held in module-level state.
    """
    credentials = CredentialProvider(config.auth, client=client)
    transport = GitHubHttpTransport(credentials, client=client)
    approvals = ApprovalLedger()
    policy = PolicyEngine(config.policy, approvals)
    audit = AuditLogger(config.audit)
    guard = GovernanceGuard(policy, audit, actor=actor)
    return GitHubDeps(
        config=config,
        credentials=credentials,
        transport=transport,
        approvals=approvals,
        policy=policy,
        audit=audit,
        guard=guard,
    )
