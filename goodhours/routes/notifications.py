from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from goodhours.db import get_db
from goodhours.models.user import User
from goodhours.schemas.notification import NotificationOut
from goodhours.services import notifications
from goodhours.services.auth import get_current_user

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationOut])
def list_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return notifications.list_for_user(db, current_user, unread_only=unread_only)


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return notifications.mark_read(db, current_user, notification_id)


@router.post("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"updated": notifications.mark_all_read(db, current_user)}
