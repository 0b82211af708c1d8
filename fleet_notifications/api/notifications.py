"""API routes for the notification inbox and recipient preferences."""

from datetime import timedelta
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core import CompanyIdDep, SessionDep, get_settings
from ..models import NotificationStatus, NotificationType, RecipientType, utcnow
from ..schemas import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationPreferenceResponse,
    NotificationPreferenceUpdate,
    NotificationResponse,
    NotificationStatsResponse,
)
from ..services.notification_service import (
    NotificationNotFoundError,
    NotificationService,
    build_notification_service,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])

# Listings without all=true only cover this window
DEFAULT_WINDOW_DAYS = 30


def get_notification_service(session: SessionDep) -> NotificationService:
    return build_notification_service(session, get_settings())


NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    company_id: CompanyIdDep,
    service: NotificationServiceDep,
    recipient_type: RecipientType = Query(...),
    recipient_id: UUID = Query(...),
    status: NotificationStatus | None = Query(None),
    type_: NotificationType | None = Query(None, alias="type"),
    unread_only: bool = Query(False),
    all_: bool = Query(False, alias="all", description="Include notifications older than 30 days"),
):
    """List a recipient's notifications, newest first, with their unread count."""
    since = None if all_ else utcnow() - timedelta(days=DEFAULT_WINDOW_DAYS)

    notifications = await service.list_notifications(
        company_id,
        recipient_type,
        recipient_id,
        status=status,
        type=type_,
        unread_only=unread_only,
        since=since,
    )
    unread_count = await service.count_unread(company_id, recipient_type, recipient_id)

    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread_count,
    )


@router.get("/stats", response_model=NotificationStatsResponse)
async def get_notification_stats(
    company_id: CompanyIdDep,
    service: NotificationServiceDep,
):
    stats = await service.get_stats(company_id)
    return NotificationStatsResponse(
        pending=stats.pending,
        scheduled=stats.scheduled,
        sent_today=stats.sent_today,
        failed_today=stats.failed_today,
    )


@router.post("/mark-all-read", response_model=MarkAllReadResponse)
async def mark_all_notifications_read(
    company_id: CompanyIdDep,
    service: NotificationServiceDep,
    recipient_type: RecipientType = Query(...),
    recipient_id: UUID = Query(...),
):
    updated = await service.mark_all_as_read(company_id, recipient_type, recipient_id)
    return MarkAllReadResponse(message="All notifications marked as read", updated=updated)


@router.get("/preferences", response_model=NotificationPreferenceResponse)
async def get_notification_preferences(
    company_id: CompanyIdDep,
    service: NotificationServiceDep,
    recipient_type: RecipientType = Query(...),
    recipient_id: UUID = Query(...),
):
    """Get a recipient's preferences; defaults are stored on first access."""
    preference = await service.get_preferences(company_id, recipient_type, recipient_id)
    return NotificationPreferenceResponse.model_validate(preference)


@router.put("/preferences", response_model=NotificationPreferenceResponse)
async def update_notification_preferences(
    data: NotificationPreferenceUpdate,
    company_id: CompanyIdDep,
    service: NotificationServiceDep,
    recipient_type: RecipientType = Query(...),
    recipient_id: UUID = Query(...),
):
    preference = await service.update_preferences(
        company_id,
        recipient_type,
        recipient_id,
        data.model_dump(exclude_none=True),
    )
    return NotificationPreferenceResponse.model_validate(preference)


@router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification(
    notification_id: UUID,
    company_id: CompanyIdDep,
    service: NotificationServiceDep,
):
    """Get a notification. Viewing it marks it as read."""
    try:
        notification = await service.mark_as_read(company_id, notification_id)
    except NotificationNotFoundError:
        raise HTTPException(status_code=404, detail="Notification not found")
    return NotificationResponse.model_validate(notification)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    company_id: CompanyIdDep,
    service: NotificationServiceDep,
):
    try:
        notification = await service.mark_as_read(company_id, notification_id)
    except NotificationNotFoundError:
        raise HTTPException(status_code=404, detail="Notification not found")
    return NotificationResponse.model_validate(notification)
