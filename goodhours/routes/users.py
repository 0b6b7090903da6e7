from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from goodhours.db import get_db
from goodhours.models.school import School
from goodhours.models.user import User
from goodhours.schemas.user import (
    UserOut, OrganizationCreate, OrganizationOut, SchoolCreate, SchoolOut, SchoolSettingsUpdate,
)
from goodhours.services import onboarding
from goodhours.services.auth import get_current_user, require_org_admin, require_school_staff

router = APIRouter(tags=["Users"])


@router.get("/users/me", response_model=UserOut)
def read_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/organizations", response_model=OrganizationOut, status_code=201)
def create_organization(
    payload: OrganizationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return onboarding.create_organization(db, current_user, payload.model_dump())


@router.post("/schools", response_model=SchoolOut, status_code=201)
def create_school(
    payload: SchoolCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return onboarding.create_school(db, current_user, payload.model_dump())


@router.get("/schools", response_model=List[SchoolOut])
def list_schools(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_org_admin),
):
    """Schools an organization can ask for approval."""
    return db.query(School).order_by(School.name.asc()).all()


@router.patch("/schools/me/settings", response_model=SchoolOut)
def update_school_settings(
    payload: SchoolSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_school_staff),
):
    return onboarding.update_school_settings(db, current_user, payload.model_dump(exclude_unset=True))
