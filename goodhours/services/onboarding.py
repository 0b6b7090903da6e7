"""Organization and school registration plus school policy settings."""
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from goodhours.exceptions import ForbiddenException, InvalidStateException, NotFoundException
from goodhours.models.school import School, Organization
from goodhours.models.user import User, UserRole

logger = logging.getLogger("goodhours.onboarding")


def create_organization(db: Session, actor: User, data: Dict[str, Any]) -> Organization:
    if actor.role != UserRole.org_admin:
        raise ForbiddenException("Organization admin access required")
    if actor.organization_id:
        raise InvalidStateException("Account already manages an organization", current="AFFILIATED")
    organization = Organization(**data)
    db.add(organization)
    db.flush()
    actor.organization_id = organization.id
    db.commit()
    db.refresh(organization)
    logger.info(f"[onboarding] organization={organization.id} admin={actor.id}")
    return organization


def create_school(db: Session, actor: User, data: Dict[str, Any]) -> School:
    if actor.role not in (UserRole.school_admin, UserRole.district_admin):
        raise ForbiddenException("School admin access required")
    if actor.school_id:
        raise InvalidStateException("Account already manages a school", current="AFFILIATED")
    school = School(admin_user_id=actor.id, **data)
    db.add(school)
    db.flush()
    actor.school_id = school.id
    db.commit()
    db.refresh(school)
    logger.info(f"[onboarding] school={school.id} admin={actor.id}")
    return school


def get_school(db: Session, school_id: str) -> School:
    school = db.query(School).filter(School.id == school_id).first()
    if not school:
        raise NotFoundException("School not found")
    return school


def update_school_settings(db: Session, actor: User, changes: Dict[str, Any]) -> School:
    if not actor.school_id:
        raise ForbiddenException("No school scope for this account")
    school = get_school(db, actor.school_id)
    if school.admin_user_id != actor.id and actor.role not in (UserRole.school_admin, UserRole.district_admin):
        raise ForbiddenException("Only school administrators can change school settings")
    for field, value in changes.items():
        if value is not None:
            setattr(school, field, value)
    db.commit()
    db.refresh(school)
    return school
