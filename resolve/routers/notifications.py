"""
Notification centre for the signed-in user.

GET    /                 live notifications, most urgent first
GET    /summary          counts for the bell badge
POST   /refresh          generate deadline reminders and suggestions now
POST   /read-all         mark every unread notification read
PATCH  /{id}/read        mark one read
PATCH  /{id}/archive     archive one
DELETE /{id}             delete one
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.database import get_db
from resolve.dependencies.auth import get_current_context
from resolve.models.database_models import Notification, NotificationPriority, NotificationStatus
from resolve.models.schemas import (
    MarkAllReadResponse,
    NotificationRefreshResponse,
    NotificationResponse,
    NotificationSummary,
)
from resolve.services import notifications
from resolve.services.policy import RequestContext

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    status_filter: Optional[NotificationStatus] = Query(None, alias="status"),
    priority: Optional[NotificationPriority] = Query(None),
    type_filter: Optional[str] = Query(None, alias="type"),
    category: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> List[Notification]:
    return await notifications.list_notifications(
        db,
        context.user_id,
        status=status_filter.value if status_filter else None,
        priority=priority.value if priority else None,
        type_=type_filter,
        category=category,
        limit=limit,
        offset=offset,
    )


@router.get("/summary", response_model=NotificationSummary)
async def notification_summary(
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> NotificationSummary:
    return await notifications.summarize(db, context.user_id)


@router.post("/refresh", response_model=NotificationRefreshResponse)
async def refresh_notifications(
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> NotificationRefreshResponse:
    deadline = await notifications.create_deadline_notifications(db, context.user_id)
    smart = await notifications.create_smart_notifications(db, context.user_id)
    if deadline or smart:
        logger.info("Generated %d deadline and %d smart notifications for %s", deadline, smart, context.user_id)
    return NotificationRefreshResponse(created=deadline + smart, deadline=deadline, smart=smart)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> MarkAllReadResponse:
    return MarkAllReadResponse(updated=await notifications.mark_all_read(db, context.user_id))


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> Notification:
    notification = await notifications.get_owned(db, notification_id, context)
    notifications.mark_read(notification)
    await db.flush()
    return notification


@router.patch("/{notification_id}/archive", response_model=NotificationResponse)
async def archive(
    notification_id: int,
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> Notification:
    notification = await notifications.get_owned(db, notification_id, context)
    notifications.archive(notification)
    await db.flush()
    return notification


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_notification(
    notification_id: int,
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> Response:
    notification = await notifications.get_owned(db, notification_id, context)
    await notifications.delete_notification(db, notification)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
