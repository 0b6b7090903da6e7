from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from goodhours.db import get_db
from goodhours.models.signup import Signup
from goodhours.models.user import User
from goodhours.schemas.signup import SignupCreate, SignupOut
from goodhours.services import capacity
from goodhours.services.auth import get_current_user, require_student

router = APIRouter(prefix="/signups", tags=["Signups"])


def signup_out(signup: Signup) -> SignupOut:
    out = SignupOut.model_validate(signup)
    out.session_id = signup.session.id if signup.session else None
    return out


@router.post("", response_model=SignupOut, status_code=201)
def request_signup(
    payload: SignupCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return signup_out(capacity.request_signup(db, payload.opportunity_id, current_user))


@router.get("/me", response_model=List[SignupOut])
def my_signups(
    include_cancelled: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return [signup_out(s) for s in capacity.list_student_signups(db, current_user, include_cancelled)]


@router.post("/{signup_id}/cancel", response_model=SignupOut)
def cancel_signup(
    signup_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return signup_out(capacity.cancel_signup(db, signup_id, current_user))
