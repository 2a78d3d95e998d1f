"""
Case notifications for the signed-in resident.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database

from barangay.core.database import get_db, to_jsonable
from barangay.core.security import require_user
from barangay.core.user_context import UserContext
from barangay.services.notifications import NotificationService, coerce_limit

router = APIRouter(prefix="/api/case-notifications", tags=["Case Notifications"])


def get_notification_service(db: Database = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


@router.get("")
def list_notifications(
    limit: Optional[str] = Query(None),
    unread_only: bool = Query(False, alias="unreadOnly"),
    user: UserContext = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Newest first; a missing, zero or non-numeric `limit` means 20."""
    items, unread_count = service.list_notifications(user, limit=coerce_limit(limit), unread_only=unread_only)
    return {"ok": True, "items": to_jsonable(items), "unreadCount": unread_count}


@router.post("/read-all")
def mark_all_read(
    user: UserContext = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    service.mark_all_read(user)
    return {"ok": True}
