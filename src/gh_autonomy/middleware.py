"""Guarded invocation: policy check, execute, audit.

Every write-capability GitHub operation passes through GovernanceGuard.run().
Read operations may call the transport directly since policy always allows
them.
"""

import time
from typing import Awaitable, Callable

import httpx
from loguru import logger

from .audit import AuditEntry, AuditLogger, AuditOutcome, redact, utc_timestamp
from .github.auth import ConfigurationError, ExchangeError
from .github.transport import TransportResult
from .governance.models import DecisionOutcome, PolicyRequest
from .governance.policy import PolicyEngine

# Stable error codes returned to tool callers
POLICY_DENIED = "POLICY_DENIED"
APPROVAL_REQUIRED = "APPROVAL_REQUIRED"
CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
EXCHANGE_ERROR = "EXCHANGE_ERROR"
TRANSPORT_ERROR = "TRANSPORT_ERROR"

DEFAULT_ACTOR = "agent"
BACKEND = "github"

Operation = Callable[[], Awaitable[TransportResult]]


class GovernanceGuard:
    """
    Single choke point for write operations.

    Enforcement paths:
    - denied: return POLICY_DENIED without calling the operation
    - needs_approval: return APPROVAL_REQUIRED naming the repository
    - allowed: await the operation and return its result

    Exactly one audit entry is appended per call, whichever path is taken.
    """

    def __init__(
        self,
        policy: PolicyEngine,
        audit: AuditLogger,
        actor: str = DEFAULT_ACTOR,
    ):
        self.policy = policy
        self.audit = audit
        self.actor = actor

    def _record(
        self,
        request: PolicyRequest,
        session_id: str,
        decision: DecisionOutcome,
        outcome: AuditOutcome,
        started: float,
        error: str | None = None,
    ) -> None:
        self.audit.log(
            AuditEntry(
                timestamp=utc_timestamp(),
                session_id=session_id,
                action=request.action,
                actor=self.actor,
                repo=request.resource.slug,
                backend=BACKEND,
                decision=decision,
                outcome=outcome,
                duration_ms=int((time.monotonic() - started) * 1000),
                error=error,
            )
        )

    async def run(
        self,
        request: PolicyRequest,
        session_id: str,
        operation: Operation,
    ) -> TransportResult:
        """
        Evaluate policy and, if allowed, execute the operation.

        Args:
            request: Operation being attempted
            session_id: Opaque session identifier
            operation: Zero-argument coroutine function performing the remote call

        Returns:
            The operation's result, or a failure result carrying an error code
        """
        started = time.monotonic()
        decision = self.policy.evaluate(request, session_id)
        slug = request.resource.slug

        if decision.outcome == DecisionOutcome.DENIED:
            logger.warning(f"Denied {request.action} on {slug}: {decision.reason}")
            self._record(
                request, session_id, decision.outcome, AuditOutcome.FAILURE, started,
                error=decision.reason,
            )
            return TransportResult.failure(
                message=decision.reason, code=POLICY_DENIED, repo=slug
            )

        if decision.outcome == DecisionOutcome.NEEDS_APPROVAL:
            logger.warning(f"Approval required for {request.action} on {slug} (session {session_id})")
            message = (
                f"{decision.reason}. Ask the user to approve write access to {slug} "
                f"for this session, then call github_session_allow_repo."
            )
            self._record(
                request, session_id, decision.outcome, AuditOutcome.FAILURE, started,
                error=decision.reason,
            )
            return TransportResult.failure(message=message, code=APPROVAL_REQUIRED, repo=slug)

        try:
            result = await operation()
        except ConfigurationError as e:
            result = TransportResult.failure(message=str(e), code=CONFIGURATION_ERROR)
        except ExchangeError as e:
            result = TransportResult.failure(
                message=redact(str(e)), status=e.status, code=EXCHANGE_ERROR
            )
        except httpx.HTTPError as e:
            result = TransportResult.failure(message=redact(str(e)), code=TRANSPORT_ERROR)
        except Exception as e:
            logger.error(f"Unexpected error in {request.action} on {slug}: {e}")
            self._record(
                request, session_id, decision.outcome, AuditOutcome.FAILURE, started,
                error=str(e),
            )
            raise

        if result.ok:
            self._record(request, session_id, decision.outcome, AuditOutcome.SUCCESS, started)
        else:
            error_text = result.error.message if result.error else f"HTTP {result.status}"
            self._record(
                request, session_id, decision.outcome, AuditOutcome.FAILURE, started,
                error=error_text,
            )
        return result
