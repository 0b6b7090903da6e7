"""Opportunity catalogue: organization-side editing and the filtered listing."""
from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from goodhours.exceptions import (
    NotFoundException,
    ForbiddenException,
    InvalidStateException,
    ValidationException,
)
from goodhours.models.opportunity import Opportunity, OpportunityStatus
from goodhours.models.signup import Signup, SignupStatus
from goodhours.models.user import User, UserRole
from goodhours.services import capacity, trust_graph
from goodhours.services.notifications import notify_many, NotificationKind
from goodhours.utils.datetime import to_naive_utc

logger = logging.getLogger("goodhours.opportunities")

EDITABLE_FIELDS = {"title", "description", "location", "date", "duration_hours", "capacity"}


def _require_org_admin(actor: User):
    if actor.role != UserRole.org_admin or not actor.organization_id:
        raise ForbiddenException("Organization admin access required")


def _validate(data: Dict[str, Any]):
    if "capacity" in data and (data["capacity"] is None or data["capacity"] <= 0):
        raise ValidationException("capacity must be > 0")
    if "duration_hours" in data and (data["duration_hours"] is None or data["duration_hours"] <= 0):
        raise ValidationException("duration_hours must be > 0")
    if "title" in data and not (data["title"] or "").strip():
        raise ValidationException("title is required")


def get_opportunity(db: Session, opportunity_id: str) -> Opportunity:
    opportunity = db.query(Opportunity).filter(Opportunity.id == opportunity_id).first()
    if not opportunity:
        raise NotFoundException("Opportunity not found")
    return opportunity


def get_opportunity_for(db: Session, viewer: User, opportunity_id: str) -> Opportunity:
    """Load one opportunity as ``viewer`` sees it; blocked organizations stay hidden."""
    opportunity = get_opportunity(db, opportunity_id)
    if viewer.role != UserRole.org_admin:
        trust_graph.ensure_not_blocked(db, opportunity.organization_id, viewer.school_id)
    return opportunity


def create_opportunity(db: Session, actor: User, data: Dict[str, Any]) -> Opportunity:
    _require_org_admin(actor)
    for required in ("title", "date", "duration_hours", "capacity"):
        if data.get(required) is None:
            raise ValidationException(f"{required} is required")
    _validate(data)
    opportunity = Opportunity(
        organization_id=actor.organization_id,
        title=data["title"].strip(),
        description=data.get("description") or "",
        location=data.get("location") or "",
        date=to_naive_utc(data["date"]),
        duration_hours=data["duration_hours"],
        capacity=data["capacity"],
        status=OpportunityStatus.ACTIVE,
    )
    db.add(opportunity)
    db.commit()
    db.refresh(opportunity)
    logger.info(f"[opportunities] created opportunity={opportunity.id} org={actor.organization_id}")
    return opportunity


def _lock_owned(db: Session, actor: User, opportunity_id: str) -> Opportunity:
    _require_org_admin(actor)
    opportunity = capacity.lock_opportunity(db, opportunity_id)
    if opportunity.organization_id != actor.organization_id:
        raise ForbiddenException("Opportunity belongs to another organization")
    return opportunity


def _require_active(opportunity: Opportunity, operation: str):
    if opportunity.status != OpportunityStatus.ACTIVE:
        raise InvalidStateException(
            f"Cannot {operation} an opportunity that is {opportunity.status.value}",
            current=opportunity.status.value,
        )


def update_opportunity(db: Session, actor: User, opportunity_id: str, changes: Dict[str, Any]) -> Opportunity:
    """Edit an active opportunity; raising capacity admits waitlisted students."""
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationException(f"Unknown fields: {', '.join(sorted(unknown))}")
    _validate(changes)

    def _update() -> Opportunity:
        opportunity = _lock_owned(db, actor, opportunity_id)
        _require_active(opportunity, "edit")
        if "capacity" in changes:
            confirmed = capacity.confirmed_count(db, opportunity.id)
            if changes["capacity"] < confirmed:
                raise ValidationException(
                    f"capacity cannot be lower than the {confirmed} confirmed signups"
                )
        for field, value in changes.items():
            if field == "date":
                value = to_naive_utc(value)
            setattr(opportunity, field, value)
        db.flush()
        promoted = capacity.promote_waitlist(db, opportunity)
        db.commit()
        db.refresh(opportunity)
        if promoted:
            logger.info(f"[opportunities] capacity change promoted {len(promoted)} on opportunity={opportunity.id}")
        return opportunity

    return capacity.run_with_retry(db, "update opportunity", _update)


def cancel_opportunity(db: Session, actor: User, opportunity_id: str) -> Opportunity:
    opportunity = _lock_owned(db, actor, opportunity_id)
    _require_active(opportunity, "cancel")
    opportunity.status = OpportunityStatus.CANCELLED
    student_ids = [
        r[0] for r in db.query(Signup.student_id).filter(
            Signup.opportunity_id == opportunity.id,
            Signup.status != SignupStatus.CANCELLED,
        ).all()
    ]
    notify_many(
        db, student_ids, NotificationKind.OPPORTUNITY_CANCELLED, "Opportunity Cancelled",
        f"\"{opportunity.title}\" has been cancelled.",
        {"opportunity_id": opportunity.id},
    )
    db.commit()
    db.refresh(opportunity)
    logger.info(f"[opportunities] cancelled opportunity={opportunity.id} notified={len(set(student_ids))}")
    return opportunity


def complete_opportunity(db: Session, actor: User, opportunity_id: str) -> Opportunity:
    opportunity = _lock_owned(db, actor, opportunity_id)
    _require_active(opportunity, "complete")
    opportunity.status = OpportunityStatus.COMPLETED
    db.commit()
    db.refresh(opportunity)
    return opportunity


def seat_counts(db: Session, opportunity_ids: List[str]) -> Dict[str, Dict[str, int]]:
    counts: Dict[str, Dict[str, int]] = {oid: {"confirmed": 0, "waitlisted": 0} for oid in opportunity_ids}
    if not opportunity_ids:
        return counts
    rows = (
        db.query(Signup.opportunity_id, Signup.status, func.count(Signup.id))
        .filter(
            Signup.opportunity_id.in_(opportunity_ids),
            Signup.status != SignupStatus.CANCELLED,
        )
        .group_by(Signup.opportunity_id, Signup.status)
        .all()
    )
    for oid, status, n in rows:
        counts[oid][status.value.lower()] = n
    return counts


def list_opportunities(
    db: Session,
    viewer: User,
    approved_only: bool = False,
    search: Optional[str] = None,
    organization_id: Optional[str] = None,
    status: Optional[OpportunityStatus] = OpportunityStatus.ACTIVE,
    date_from: Optional[datetime] = None,
) -> List[Tuple[Opportunity, Dict[str, int]]]:
    """Opportunities ordered by date, each paired with its seat counts.

    Viewers with a school affiliation never see organizations their school
    has blocked; with ``approved_only`` they see only approved ones.
    Viewers without a school get the unfiltered list.
    """
    q = db.query(Opportunity)
    if status is not None:
        q = q.filter(Opportunity.status == status)
    if organization_id:
        q = q.filter(Opportunity.organization_id == organization_id)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(
            Opportunity.title.ilike(like),
            Opportunity.description.ilike(like),
            Opportunity.location.ilike(like),
        ))
    if date_from is not None:
        q = q.filter(Opportunity.date >= to_naive_utc(date_from))
    # Organization staff browsing their own catalogue are not school-filtered
    if viewer.school_id and viewer.role != UserRole.org_admin:
        if approved_only:
            q = trust_graph.approved_only_filter(q, viewer.school_id)
        else:
            q = trust_graph.exclude_blocked_filter(q, viewer.school_id)
    opportunities = q.order_by(Opportunity.date.asc(), Opportunity.id.asc()).all()
    counts = seat_counts(db, [o.id for o in opportunities])
    return [(o, counts[o.id]) for o in opportunities]
