"""User Notifications API - In-app notification inbox"""
from fastapi import APIRouter, Depends, Query

from ..deps import require_permission
from ...domain.models import ActorContext, Notification
from ...domain.roles import NOTIFICATIONS_VIEW
from ...services.notification_service import NotificationService
from .schemas import NotificationListResponse

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def get_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    actor: ActorContext = Depends(require_permission(NOTIFICATIONS_VIEW))
):
    """Notifications for the current user, newest first"""
    service = NotificationService()
    return NotificationListResponse(
        items=service.list_notifications(actor.user_id, unread_only=unread_only, limit=limit),
        unread_count=service.count_unread(actor.user_id)
    )


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_notification_read(
    notification_id: str,
    actor: ActorContext = Depends(require_permission(NOTIFICATIONS_VIEW))
):
    """Mark one of the current user's notifications as read"""
    return NotificationService().mark_read(notification_id, actor.user_id)
