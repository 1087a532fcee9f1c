"""Notification inbox routes consumed by the mobile client."""
import logging
from fastapi import APIRouter, Depends, Response, status

from eventpulse.container import Services, get_services
from eventpulse.schemas.notification import NotificationRecord, NotificationStats, UnreadCount

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/stats", response_model=NotificationStats)
async def notification_stats(services: Services = Depends(get_services)):
    """Totals, unread count, last-7-days volume and read rate."""
    return await services.inbox.stats()


@router.get("/user/{user_id}", response_model=list[NotificationRecord])
async def list_user_notifications(user_id: str, services: Services = Depends(get_services)):
    """A user's notifications, newest first."""
    return await services.inbox.list_for_user(user_id)


@router.get("/user/{user_id}/unread-count", response_model=UnreadCount)
async def unread_count(user_id: str, services: Services = Depends(get_services)):
    return UnreadCount(user_id=user_id, unread=await services.inbox.unread_count(user_id))


@router.post("/{notification_id}/read", response_model=NotificationRecord)
async def mark_read(notification_id: str, services: Services = Depends(get_services)):
    """Mark a notification as read."""
    return await services.inbox.mark_read(notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(notification_id: str, services: Services = Depends(get_services)):
    """Delete a notification (recipient action)."""
    await services.inbox.delete(notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
