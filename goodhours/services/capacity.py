"""Capacity ledger: signup admission, cancellation and waitlist promotion.

Every admission, cancellation and promotion for an opportunity runs inside a
transaction holding that opportunity's row lock, so the confirmed count is
read and written under a single ordering. Promotion is part of the same
transaction as the cancellation that freed the seat.
"""
from __future__ import annotations
import logging
from typing import Callable, List, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from goodhours.exceptions import (
    GoodHoursException,
    NotFoundException,
    ForbiddenException,
    InvalidStateException,
    DuplicateSignupException,
    TransientException,
)
from goodhours.models.opportunity import Opportunity, OpportunityStatus
from goodhours.models.service_session import ServiceSession, SessionStatus
from goodhours.models.signup import Signup, SignupStatus
from goodhours.models.user import User, UserRole
from goodhours.services import audit, trust_graph
from goodhours.services.notifications import notify, NotificationKind
from goodhours.services.transitions import CANCELLABLE, allowed_operations
from goodhours.utils.datetime import utc_now

logger = logging.getLogger("goodhours.capacity")

T = TypeVar("T")

MAX_ATTEMPTS = 2


def run_with_retry(db: Session, op_name: str, fn: Callable[[], T]) -> T:
    """Run a ledger transaction, retrying once on a persistence conflict.

    ``fn`` must perform the whole unit of work including the commit. Domain
    errors roll back and propagate unchanged.
    """
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            return fn()
        except GoodHoursException:
            db.rollback()
            raise
        except (OperationalError, IntegrityError) as e:
            db.rollback()
            if attempt == MAX_ATTEMPTS:
                logger.error(f"[capacity] {op_name} failed after {attempt} attempts: {e}")
                raise TransientException(f"Could not complete {op_name}; please retry") from e
            logger.warning(f"[capacity] {op_name} conflict on attempt {attempt}, retrying: {e}")
    raise AssertionError("unreachable")


def lock_opportunity(db: Session, opportunity_id: str) -> Opportunity:
    opportunity = (
        db.query(Opportunity)
        .filter(Opportunity.id == opportunity_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not opportunity:
        raise NotFoundException("Opportunity not found")
    return opportunity


def confirmed_count(db: Session, opportunity_id: str) -> int:
    return db.query(func.count(Signup.id)).filter(
        Signup.opportunity_id == opportunity_id,
        Signup.status == SignupStatus.CONFIRMED,
    ).scalar() or 0


def _next_sequence(opportunity: Opportunity) -> int:
    opportunity.signup_seq = (opportunity.signup_seq or 0) + 1
    return opportunity.signup_seq


def _spawn_session(db: Session, signup: Signup, opportunity: Opportunity) -> ServiceSession:
    # Hours start as the declared duration; check-out replaces them on the legacy path
    session = ServiceSession(
        signup_id=signup.id,
        student_id=signup.student_id,
        opportunity_id=opportunity.id,
        status=SessionStatus.COMMITTED,
        total_hours=opportunity.duration_hours,
    )
    db.add(session)
    return session


def _confirm(db: Session, signup: Signup, opportunity: Opportunity) -> ServiceSession:
    signup.status = SignupStatus.CONFIRMED
    db.flush()
    return _spawn_session(db, signup, opportunity)


def promote_waitlist(db: Session, opportunity: Opportunity) -> List[Signup]:
    """Fill free seats from the waitlist in admission order.

    The caller must hold the opportunity lock and owns the commit.
    """
    if opportunity.status != OpportunityStatus.ACTIVE:
        return []
    free = opportunity.capacity - confirmed_count(db, opportunity.id)
    if free <= 0:
        return []
    waiting = (
        db.query(Signup)
        .filter(
            Signup.opportunity_id == opportunity.id,
            Signup.status == SignupStatus.WAITLISTED,
        )
        .order_by(Signup.sequence.asc(), Signup.id.asc())
        .limit(free)
        .all()
    )
    for signup in waiting:
        _confirm(db, signup, opportunity)
        notify(
            db, signup.student_id, NotificationKind.WAITLIST_PROMOTED,
            "Spot Available!",
            f"A spot opened up for \"{opportunity.title}\" and you're now confirmed!",
            {"opportunity_id": opportunity.id, "signup_id": signup.id},
        )
        logger.info(f"[capacity] promoted signup={signup.id} opportunity={opportunity.id} seq={signup.sequence}")
    return waiting


def request_signup(db: Session, opportunity_id: str, student: User) -> Signup:
    if student.role != UserRole.student:
        raise ForbiddenException("Only students can sign up for opportunities")
    student_id = student.id
    school_id = student.school_id

    def _admit() -> Signup:
        opportunity = lock_opportunity(db, opportunity_id)
        if opportunity.status != OpportunityStatus.ACTIVE:
            raise InvalidStateException(
                f"Opportunity is {opportunity.status.value}",
                current=opportunity.status.value,
            )
        trust_graph.ensure_not_blocked(db, opportunity.organization_id, school_id)
        existing = db.query(Signup).filter(
            Signup.opportunity_id == opportunity_id,
            Signup.student_id == student_id,
            Signup.status != SignupStatus.CANCELLED,
        ).first()
        if existing:
            raise DuplicateSignupException("Already signed up for this opportunity")

        has_seat = confirmed_count(db, opportunity_id) < opportunity.capacity
        signup = Signup(
            opportunity_id=opportunity_id,
            student_id=student_id,
            status=SignupStatus.WAITLISTED,
            sequence=_next_sequence(opportunity),
        )
        db.add(signup)
        db.flush()
        if has_seat:
            _confirm(db, signup, opportunity)
            notify(
                db, student_id, NotificationKind.SIGNUP_CONFIRMED, "Signup Confirmed",
                f"You're signed up for \"{opportunity.title}\"",
                {"opportunity_id": opportunity_id, "signup_id": signup.id},
            )
        else:
            notify(
                db, student_id, NotificationKind.SIGNUP_WAITLISTED, "Added to Waitlist",
                f"You've been waitlisted for \"{opportunity.title}\"",
                {"opportunity_id": opportunity_id, "signup_id": signup.id},
            )
        db.commit()
        db.refresh(signup)
        logger.info(
            f"[capacity] signup={signup.id} opportunity={opportunity_id} student={student_id} "
            f"status={signup.status.value}"
        )
        return signup

    return run_with_retry(db, "signup", _admit)


def _can_cancel(actor: User, signup: Signup, opportunity: Opportunity) -> bool:
    if actor.id == signup.student_id:
        return True
    return actor.role == UserRole.org_admin and actor.organization_id == opportunity.organization_id


def cancel_signup(db: Session, signup_id: str, actor: User) -> Signup:
    """Cancel a signup and, when it held a seat, promote the next waitlisted one."""
    actor_id = actor.id

    def _cancel() -> Signup:
        signup = db.query(Signup).filter(Signup.id == signup_id).first()
        if not signup:
            raise NotFoundException("Signup not found")
        opportunity = lock_opportunity(db, signup.opportunity_id)
        if not _can_cancel(actor, signup, opportunity):
            raise ForbiddenException("Not allowed to cancel this signup")
        # Re-read under the lock; a concurrent cancel may have won
        db.refresh(signup)
        if signup.status == SignupStatus.CANCELLED:
            raise InvalidStateException("Signup is already cancelled", current=signup.status.value)

        was_confirmed = signup.status == SignupStatus.CONFIRMED
        session = signup.session
        if was_confirmed and session is not None:
            if session.status not in CANCELLABLE or session.abandoned_at is not None:
                raise InvalidStateException(
                    f"Cannot cancel once the session is {session.status.value}",
                    current=session.status.value,
                    allowed=allowed_operations(session),
                )
            session.abandoned_at = utc_now()
            audit.record(db, "session.cancel", actor_id, session.id, signup_id=signup.id)

        signup.status = SignupStatus.CANCELLED
        db.flush()
        promoted = promote_waitlist(db, opportunity) if was_confirmed else []
        db.commit()
        db.refresh(signup)
        logger.info(
            f"[capacity] cancelled signup={signup.id} opportunity={opportunity.id} "
            f"was_confirmed={was_confirmed} promoted={[s.id for s in promoted]}"
        )
        return signup

    return run_with_retry(db, "cancel", _cancel)


def list_student_signups(db: Session, student: User, include_cancelled: bool = False) -> List[Signup]:
    q = db.query(Signup).filter(Signup.student_id == student.id)
    if not include_cancelled:
        q = q.filter(Signup.status != SignupStatus.CANCELLED)
    return q.order_by(Signup.created_at.desc()).all()


def list_opportunity_signups(db: Session, actor: User, opportunity_id: str) -> List[Signup]:
    opportunity = db.query(Opportunity).filter(Opportunity.id == opportunity_id).first()
    if not opportunity:
        raise NotFoundException("Opportunity not found")
    if actor.role != UserRole.org_admin or actor.organization_id != opportunity.organization_id:
        raise ForbiddenException("Only the hosting organization can view its roster")
    return (
        db.query(Signup)
        .filter(Signup.opportunity_id == opportunity_id, Signup.status != SignupStatus.CANCELLED)
        .order_by(Signup.status.asc(), Signup.sequence.asc())
        .all()
    )
