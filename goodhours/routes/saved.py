from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from goodhours.db import get_db
from goodhours.models.saved_opportunity import SavedOpportunity, SavedStatus
from goodhours.models.user import User
from goodhours.schemas.saved import SavedCreate, SavedOpportunityOut
from goodhours.services import opportunities as catalogue
from goodhours.services import saved
from goodhours.services.auth import require_student
from goodhours.routes.opportunities import opportunity_out

router = APIRouter(prefix="/saved", tags=["Saved Opportunities"])


def saved_out(entries: List[SavedOpportunity], db: Session) -> List[SavedOpportunityOut]:
    counts = catalogue.seat_counts(db, [e.opportunity_id for e in entries])
    result = []
    for entry in entries:
        out = SavedOpportunityOut.model_validate(entry)
        out.opportunity = opportunity_out(entry.opportunity, counts.get(entry.opportunity_id, {}))
        result.append(out)
    return result


@router.post("", response_model=SavedOpportunityOut)
def mark_opportunity(
    payload: SavedCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    """Save, skip or discard an opportunity; marking again replaces the status."""
    entry = saved.mark(db, current_user, payload.opportunity_id, payload.status)
    return saved_out([entry], db)[0]


@router.get("", response_model=List[SavedOpportunityOut])
def list_saved(
    status: Optional[SavedStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return saved_out(saved.list_marked(db, current_user, status=status), db)


@router.delete("/{saved_id}")
def delete_saved(
    saved_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    saved.remove(db, current_user, saved_id)
    return {"success": True}
