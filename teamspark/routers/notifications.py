from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from teamspark.database import get_db
from teamspark.models.user import User
from teamspark.routers.auth_deps import get_current_user
from teamspark.schemas.notification import NotificationResponse
from teamspark.services.notification import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=List[NotificationResponse])
def get_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return NotificationService.list_for_user(db, current_user.id, unread_only=unread_only)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return NotificationService.mark_read(db, current_user.id, notification_id)


@router.post("/mark-all-read")
def mark_all_notifications_as_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    updated = NotificationService.mark_all_read(db, current_user.id)
    return {"message": "All notifications marked as read", "updated": updated}
