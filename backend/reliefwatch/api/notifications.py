"""In-app notification inbox API."""

from fastapi import APIRouter, HTTPException, status

from reliefwatch.schemas.notification import NotificationResponse
from reliefwatch.services.notification_service import in_app_notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/{recipient}", response_model=list[NotificationResponse])
def list_notifications(recipient: str, unread_only: bool = False):
    """Notifications for a recipient (a responder id or `dashboard`), oldest first."""
    items = in_app_notifications.list_for(recipient)
    if unread_only:
        items = [n for n in items if not n.read]
    return items


@router.put("/{recipient}/read-all")
def mark_all_read(recipient: str) -> dict:
    return {"marked": in_app_notifications.mark_all_read(recipient)}


@router.put("/{recipient}/{notification_id}/read")
def mark_read(recipient: str, notification_id: str) -> dict:
    if not in_app_notifications.mark_read(recipient, notification_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return {"status": "read"}


@router.delete("/{recipient}/{notification_id}", response_model=NotificationResponse)
def delete_notification(recipient: str, notification_id: str):
    deleted = in_app_notifications.delete(recipient, notification_id)
    if deleted is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return deleted
