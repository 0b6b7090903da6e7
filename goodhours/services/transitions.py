"""Transition tables for ServiceSession.

Both verification generations share one status column. Each table maps a
status to the operations legal from it and the status each one leads to.
The legacy path is entered by calling ``check_in`` on a COMMITTED session;
the submission path by calling ``submit_verification``.
"""
from typing import Dict, Optional, Set

from goodhours.models.service_session import ServiceSession, SessionStatus

SUBMISSION_TRANSITIONS: Dict[SessionStatus, Dict[str, SessionStatus]] = {
    SessionStatus.COMMITTED: {"submit_verification": SessionStatus.PENDING_VERIFICATION},
    SessionStatus.PENDING_VERIFICATION: {
        "approve": SessionStatus.APPROVED,
        "reject": SessionStatus.REJECTED,
    },
    SessionStatus.APPROVED: {"remove_hours": SessionStatus.HOURS_REMOVED},
}

LEGACY_TRANSITIONS: Dict[SessionStatus, Dict[str, SessionStatus]] = {
    SessionStatus.PENDING_CHECKIN: {"check_in": SessionStatus.CHECKED_IN},
    SessionStatus.COMMITTED: {"check_in": SessionStatus.CHECKED_IN},
    SessionStatus.CHECKED_IN: {"check_out": SessionStatus.CHECKED_OUT},
    SessionStatus.CHECKED_OUT: {
        "approve": SessionStatus.VERIFIED,
        "reject": SessionStatus.REJECTED,
    },
    SessionStatus.VERIFIED: {"remove_hours": SessionStatus.HOURS_REMOVED},
}

# Cancelling abandons the session without changing its status
CANCELLABLE: Set[SessionStatus] = {SessionStatus.COMMITTED, SessionStatus.PENDING_CHECKIN}

REVIEWABLE: Set[SessionStatus] = {SessionStatus.PENDING_VERIFICATION, SessionStatus.CHECKED_OUT}
CREDITED: Set[SessionStatus] = {SessionStatus.APPROVED, SessionStatus.VERIFIED}


def next_status(status: SessionStatus, operation: str) -> Optional[SessionStatus]:
    for table in (SUBMISSION_TRANSITIONS, LEGACY_TRANSITIONS):
        target = table.get(status, {}).get(operation)
        if target is not None:
            return target
    return None


def allowed_operations(session: ServiceSession) -> Set[str]:
    if session.abandoned_at is not None:
        return set()
    ops = set(SUBMISSION_TRANSITIONS.get(session.status, {}))
    ops |= set(LEGACY_TRANSITIONS.get(session.status, {}))
    if session.status in CANCELLABLE:
        ops.add("cancel")
    return ops
