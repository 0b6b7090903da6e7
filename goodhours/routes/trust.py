from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from goodhours.db import get_db
from goodhours.models.trust_relation import TrustStatus
from goodhours.models.user import User
from goodhours.schemas.trust import TrustRequestCreate, TrustRelationOut
from goodhours.services import trust_graph
from goodhours.services.auth import get_current_user, require_org_admin, require_school_staff

router = APIRouter(prefix="/trust", tags=["Trust"])


@router.post("/requests", response_model=TrustRelationOut, status_code=201)
def request_approval(
    payload: TrustRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_org_admin),
):
    return trust_graph.request_approval(db, current_user, payload.school_id)


@router.get("/relations", response_model=List[TrustRelationOut])
def list_relations(
    status: Optional[TrustStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return trust_graph.list_relations(db, current_user, status)


@router.post("/relations/{relation_id}/approve", response_model=TrustRelationOut)
def approve(
    relation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_school_staff),
):
    return trust_graph.approve(db, current_user, relation_id)


@router.post("/relations/{relation_id}/reject", response_model=TrustRelationOut)
def reject(
    relation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_school_staff),
):
    return trust_graph.reject(db, current_user, relation_id)


@router.post("/organizations/{organization_id}/block", response_model=TrustRelationOut)
def block(
    organization_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_school_staff),
):
    return trust_graph.block(db, current_user, organization_id)
