"""
Audit lifecycle state machine.

in_progress -> submitted -> approved | rejected

Transitions only move forward. Once submitted, a session changes only
through apply_review().
"""

from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional

from lean_rpg.logging_config import get_logger
from lean_rpg.schemas.audit import AuditSession, AuditStatus

logger = get_logger(__name__)

VALID_TRANSITIONS: Dict[AuditStatus, FrozenSet[AuditStatus]] = {
    AuditStatus.IN_PROGRESS: frozenset({AuditStatus.SUBMITTED}),
    AuditStatus.SUBMITTED: frozenset({AuditStatus.APPROVED, AuditStatus.REJECTED}),
    AuditStatus.APPROVED: frozenset(),
    AuditStatus.REJECTED: frozenset(),
}

REVIEW_OUTCOMES = frozenset({AuditStatus.APPROVED, AuditStatus.REJECTED})


def valid_transitions(status: AuditStatus) -> FrozenSet[AuditStatus]:
    return VALID_TRANSITIONS.get(status, frozenset())


def can_transition(from_status: AuditStatus, to_status: AuditStatus) -> bool:
    return to_status in valid_transitions(from_status)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def transition_audit(
    session: AuditSession,
    to_status: AuditStatus,
    at: Optional[datetime] = None,
) -> AuditSession:
    """
    Move a session to a new status. Returns a new session; the input is untouched.

    Raises:
        ValueError: If the transition is not allowed
    """
    if not can_transition(session.status, to_status):
        raise ValueError(
            f"Invalid audit transition: {session.status.value} -> {to_status.value}"
        )

    at = at or _now()
    update: Dict[str, object] = {"status": to_status}
    if to_status == AuditStatus.SUBMITTED:
        update["submitted_at"] = at
        update["end_time"] = session.end_time or at
    elif to_status in REVIEW_OUTCOMES:
        update["reviewed_at"] = at

    logger.info(
        "Audit status changed",
        extra={"audit_id": session.id, "from": session.status.value, "to": to_status.value},
    )
    return session.model_copy(update=update)


def apply_review(
    session: AuditSession,
    reviewer_id: str,
    approved: bool,
    comments: Optional[str] = None,
    at: Optional[datetime] = None,
) -> AuditSession:
    """
    Record a reviewer decision on a submitted session.

    Only status and the reviewer fields change.

    Raises:
        ValueError: If the session is not awaiting review
    """
    outcome = AuditStatus.APPROVED if approved else AuditStatus.REJECTED
    reviewed = transition_audit(session, outcome, at=at)
    return reviewed.model_copy(
        update={"reviewer_id": reviewer_id, "review_comments": comments}
    )
