"""Organization <-> school trust relations.

One row per (organization, school). Legal moves:

    absent   -> PENDING   (request)       absent -> BLOCKED (block)
    PENDING  -> APPROVED | REJECTED       any    -> BLOCKED (block)
    REJECTED -> PENDING   (re-request)

BLOCKED is only left by deleting the row, which nothing here does.
"""
from __future__ import annotations
import logging
from typing import Dict, List, Optional, Set

from sqlalchemy import and_, exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, Query

from goodhours.exceptions import (
    NotFoundException,
    ForbiddenException,
    InvalidStateException,
    DuplicateRequestException,
)
from goodhours.models.opportunity import Opportunity
from goodhours.models.school import School, Organization
from goodhours.models.trust_relation import TrustRelation, TrustStatus
from goodhours.models.user import User, UserRole
from goodhours.services.lifecycle_emails import LifecycleEmailEvent, send_lifecycle_email
from goodhours.services.notifications import notify, notify_many, NotificationKind, organization_admin_ids
from goodhours.utils.datetime import utc_now

logger = logging.getLogger("goodhours.trust")

TRUST_TRANSITIONS: Dict[Optional[TrustStatus], Dict[str, TrustStatus]] = {
    None: {"request": TrustStatus.PENDING, "block": TrustStatus.BLOCKED},
    TrustStatus.PENDING: {"approve": TrustStatus.APPROVED, "reject": TrustStatus.REJECTED, "block": TrustStatus.BLOCKED},
    TrustStatus.APPROVED: {"block": TrustStatus.BLOCKED},
    TrustStatus.REJECTED: {"request": TrustStatus.PENDING, "block": TrustStatus.BLOCKED},
    TrustStatus.BLOCKED: {"block": TrustStatus.BLOCKED},
}


def allowed_operations(status: Optional[TrustStatus]) -> Set[str]:
    return set(TRUST_TRANSITIONS.get(status, {}))


def get_relation(db: Session, organization_id: str, school_id: str) -> Optional[TrustRelation]:
    return db.query(TrustRelation).filter(
        TrustRelation.organization_id == organization_id,
        TrustRelation.school_id == school_id,
    ).first()


def _get_school(db: Session, school_id: str) -> School:
    school = db.query(School).filter(School.id == school_id).first()
    if not school:
        raise NotFoundException("School not found")
    return school


def _require_school_owner(db: Session, actor: User, school_id: str) -> School:
    school = _get_school(db, school_id)
    if school.admin_user_id == actor.id:
        return school
    if actor.role in (UserRole.school_admin, UserRole.district_admin) and actor.school_id == school_id:
        return school
    raise ForbiddenException("Only the school's administrator can manage organization approvals")


def _illegal(relation: TrustRelation, operation: str) -> InvalidStateException:
    return InvalidStateException(
        f"Cannot {operation} a relation that is {relation.status.value}",
        current=relation.status.value,
        allowed=allowed_operations(relation.status),
    )


def request_approval(db: Session, actor: User, school_id: str) -> TrustRelation:
    if actor.role != UserRole.org_admin or not actor.organization_id:
        raise ForbiddenException("Only organization admins can request school approval")
    organization_id = actor.organization_id
    school = _get_school(db, school_id)
    organization = db.query(Organization).filter(Organization.id == organization_id).first()
    if not organization:
        raise NotFoundException("Organization not found")

    relation = get_relation(db, organization_id, school_id)
    if relation is None:
        relation = TrustRelation(
            organization_id=organization_id,
            school_id=school_id,
            status=TrustStatus.PENDING,
            requested_by=actor.id,
            requested_at=utc_now(),
        )
        db.add(relation)
    elif relation.status in (TrustStatus.PENDING, TrustStatus.APPROVED):
        raise DuplicateRequestException(f"A {relation.status.value.lower()} relation already exists with this school")
    elif relation.status == TrustStatus.BLOCKED:
        raise _illegal(relation, "request")
    else:
        relation.status = TrustStatus.PENDING
        relation.requested_by = actor.id
        relation.requested_at = utc_now()
        relation.decided_by = None
        relation.decided_at = None

    admin = db.query(User).filter(User.id == school.admin_user_id).first() if school.admin_user_id else None
    if admin:
        notify(
            db, admin.id, NotificationKind.TRUST_REQUESTED, "Organization Approval Requested",
            f"{organization.name} has requested approval to offer opportunities to your students.",
            {"organization_id": organization_id, "school_id": school_id},
        )
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent first request for the same pair
        db.rollback()
        raise DuplicateRequestException("A relation already exists with this school")
    db.refresh(relation)
    logger.info(f"[trust] requested org={organization_id} school={school_id}")

    if admin:
        send_lifecycle_email(
            LifecycleEmailEvent.ORG_APPROVAL_REQUESTED, admin.email,
            {"recipient_name": admin.name, "organization_name": organization.name},
            user_id=actor.id,
        )
    return relation


def _get_relation_by_id(db: Session, relation_id: str) -> TrustRelation:
    relation = db.query(TrustRelation).filter(TrustRelation.id == relation_id).with_for_update().first()
    if not relation:
        raise NotFoundException("Trust relation not found")
    return relation


def _decide(db: Session, actor: User, relation_id: str, operation: str) -> TrustRelation:
    relation = _get_relation_by_id(db, relation_id)
    school = _require_school_owner(db, actor, relation.school_id)
    target = TRUST_TRANSITIONS.get(relation.status, {}).get(operation)
    if target is None:
        raise _illegal(relation, operation)
    relation.status = target
    relation.decided_by = actor.id
    relation.decided_at = utc_now()

    kind = NotificationKind.TRUST_APPROVED if target == TrustStatus.APPROVED else NotificationKind.TRUST_REJECTED
    verb = "approved" if target == TrustStatus.APPROVED else "declined"
    admin_ids = organization_admin_ids(db, relation.organization_id)
    notify_many(
        db, admin_ids, kind, f"School Request {verb.title()}",
        f"{school.name} {verb} your organization's request.",
        {"school_id": school.id, "relation_id": relation.id},
    )
    db.commit()
    db.refresh(relation)
    logger.info(f"[trust] {operation} org={relation.organization_id} school={school.id}")

    if target == TrustStatus.APPROVED:
        for admin in db.query(User).filter(User.id.in_(admin_ids)).all():
            send_lifecycle_email(
                LifecycleEmailEvent.ORG_REQUEST_APPROVED, admin.email,
                {"recipient_name": admin.name, "school_name": school.name},
                user_id=actor.id,
            )
    return relation


def approve(db: Session, actor: User, relation_id: str) -> TrustRelation:
    return _decide(db, actor, relation_id, "approve")


def reject(db: Session, actor: User, relation_id: str) -> TrustRelation:
    return _decide(db, actor, relation_id, "reject")


def block(db: Session, actor: User, organization_id: str, school_id: Optional[str] = None) -> TrustRelation:
    """Block an organization for a school whatever the relation's state; idempotent."""
    school_id = school_id or actor.school_id
    if not school_id:
        raise ForbiddenException("No school scope for this account")
    school = _require_school_owner(db, actor, school_id)
    if not db.query(Organization).filter(Organization.id == organization_id).first():
        raise NotFoundException("Organization not found")

    relation = get_relation(db, organization_id, school_id)
    if relation is not None and relation.status == TrustStatus.BLOCKED:
        return relation
    if relation is None:
        relation = TrustRelation(organization_id=organization_id, school_id=school_id, requested_at=utc_now())
        db.add(relation)
    relation.status = TrustStatus.BLOCKED
    relation.decided_by = actor.id
    relation.decided_at = utc_now()
    notify_many(
        db, organization_admin_ids(db, organization_id), NotificationKind.TRUST_BLOCKED,
        "Organization Blocked",
        f"{school.name} is no longer accepting opportunities from your organization.",
        {"school_id": school_id},
    )
    db.commit()
    db.refresh(relation)
    logger.info(f"[trust] blocked org={organization_id} school={school_id}")
    return relation


def is_visible(db: Session, organization_id: str, school_id: str) -> bool:
    relation = get_relation(db, organization_id, school_id)
    return relation is not None and relation.status == TrustStatus.APPROVED


def is_blocked(db: Session, organization_id: str, school_id: Optional[str]) -> bool:
    if not school_id:
        return False
    relation = get_relation(db, organization_id, school_id)
    return relation is not None and relation.status == TrustStatus.BLOCKED


def ensure_not_blocked(db: Session, organization_id: str, school_id: Optional[str]):
    """Raise Forbidden when ``school_id`` has blocked the organization.

    A blocked organization is neither shown to the school's students nor
    able to take their signups or have its hours certified for them.
    """
    if is_blocked(db, organization_id, school_id):
        logger.info(f"[trust] refused blocked org={organization_id} school={school_id}")
        raise ForbiddenException("Your school does not accept hours from this organization")


def approved_only_filter(query: Query, school_id: str) -> Query:
    """Restrict an Opportunity query to organizations APPROVED by ``school_id``."""
    return query.filter(
        exists().where(and_(
            TrustRelation.organization_id == Opportunity.organization_id,
            TrustRelation.school_id == school_id,
            TrustRelation.status == TrustStatus.APPROVED,
        ))
    )


def exclude_blocked_filter(query: Query, school_id: str) -> Query:
    return query.filter(
        ~exists().where(and_(
            TrustRelation.organization_id == Opportunity.organization_id,
            TrustRelation.school_id == school_id,
            TrustRelation.status == TrustStatus.BLOCKED,
        ))
    )


def list_relations(db: Session, actor: User, status: Optional[TrustStatus] = None) -> List[TrustRelation]:
    """Relations visible to ``actor``: its school's (owner) or its organization's."""
    q = db.query(TrustRelation)
    if actor.role == UserRole.org_admin and actor.organization_id:
        q = q.filter(TrustRelation.organization_id == actor.organization_id)
    elif actor.school_id:
        _require_school_owner(db, actor, actor.school_id)
        q = q.filter(TrustRelation.school_id == actor.school_id)
    else:
        raise ForbiddenException("No organization or school scope for this account")
    if status is not None:
        q = q.filter(TrustRelation.status == status)
    return q.order_by(TrustRelation.requested_at.desc()).all()
