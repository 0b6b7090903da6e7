from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime

from goodhours.db import get_db
from goodhours.models.opportunity import Opportunity, OpportunityStatus
from goodhours.models.user import User
from goodhours.schemas.opportunity import OpportunityCreate, OpportunityUpdate, OpportunityOut
from goodhours.schemas.signup import SignupOut
from goodhours.services import opportunities as catalogue
from goodhours.services import capacity
from goodhours.services.auth import get_current_user, require_org_admin
from goodhours.routes.signups import signup_out

router = APIRouter(prefix="/opportunities", tags=["Opportunities"])


def opportunity_out(opportunity: Opportunity, counts: dict) -> OpportunityOut:
    out = OpportunityOut.model_validate(opportunity)
    out.confirmed_count = counts.get("confirmed", 0)
    out.waitlisted_count = counts.get("waitlisted", 0)
    out.spots_left = max(opportunity.capacity - out.confirmed_count, 0)
    return out


@router.post("", response_model=OpportunityOut, status_code=201)
def create_opportunity(
    payload: OpportunityCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_org_admin),
):
    opportunity = catalogue.create_opportunity(db, current_user, payload.model_dump())
    return opportunity_out(opportunity, {})


@router.get("", response_model=List[OpportunityOut])
def list_opportunities(
    approved_only: bool = Query(False, description="Only organizations approved by the viewer's school"),
    search: Optional[str] = None,
    organization_id: Optional[str] = None,
    status: Optional[OpportunityStatus] = OpportunityStatus.ACTIVE,
    date_from: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = catalogue.list_opportunities(
        db, current_user,
        approved_only=approved_only,
        search=search,
        organization_id=organization_id,
        status=status,
        date_from=date_from,
    )
    return [opportunity_out(o, counts) for o, counts in rows]


@router.get("/{opportunity_id}", response_model=OpportunityOut)
def get_opportunity(
    opportunity_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    opportunity = catalogue.get_opportunity_for(db, current_user, opportunity_id)
    return opportunity_out(opportunity, catalogue.seat_counts(db, [opportunity.id])[opportunity.id])


@router.patch("/{opportunity_id}", response_model=OpportunityOut)
def update_opportunity(
    opportunity_id: str,
    payload: OpportunityUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_org_admin),
):
    opportunity = catalogue.update_opportunity(db, current_user, opportunity_id, payload.model_dump(exclude_unset=True))
    return opportunity_out(opportunity, catalogue.seat_counts(db, [opportunity.id])[opportunity.id])


@router.post("/{opportunity_id}/cancel", response_model=OpportunityOut)
def cancel_opportunity(
    opportunity_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_org_admin),
):
    opportunity = catalogue.cancel_opportunity(db, current_user, opportunity_id)
    return opportunity_out(opportunity, catalogue.seat_counts(db, [opportunity.id])[opportunity.id])


@router.post("/{opportunity_id}/complete", response_model=OpportunityOut)
def complete_opportunity(
    opportunity_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_org_admin),
):
    opportunity = catalogue.complete_opportunity(db, current_user, opportunity_id)
    return opportunity_out(opportunity, catalogue.seat_counts(db, [opportunity.id])[opportunity.id])


@router.get("/{opportunity_id}/signups", response_model=List[SignupOut])
def list_signups(
    opportunity_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_org_admin),
):
    return [signup_out(s) for s in capacity.list_opportunity_signups(db, current_user, opportunity_id)]
