"""
Intake applications.

Anyone may apply; a signed-in applicant's id is stored on the application.
Moderators and admins review every application and decide its status, and
the applicant is emailed on submission and on each decision.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.database import get_db
from resolve.dependencies.auth import get_current_context, get_optional_context, require_moderator
from resolve.errors import Forbidden, NotFound
from resolve.models.database_models import Application, ApplicationStatus
from resolve.models.schemas import (
    ApplicationCreateRequest,
    ApplicationResponse,
    ApplicationStatusUpdate,
)
from resolve.services.email_service import Mailer, get_mailer
from resolve.services.policy import ADMIN_OR_MODERATOR, RequestContext, is_permitted

logger = logging.getLogger(__name__)

router = APIRouter()


def _is_reviewer(context: RequestContext) -> bool:
    return is_permitted(ADMIN_OR_MODERATOR, context.role)


async def _load_application(db: AsyncSession, application_id: int) -> Application:
    application = await db.get(Application, application_id)
    if application is None:
        raise NotFound("Application not found")
    return application


async def _notify(mailer: Mailer, application: Application, reason: Optional[str] = None) -> None:
    if not await mailer.send_application_update(application, reason):
        logger.warning("Could not email applicant for application %d", application.id)


@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
async def create_application(
    body: ApplicationCreateRequest,
    context: Optional[RequestContext] = Depends(get_optional_context),
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> Application:
    application = Application(
        user_id=context.user_id if context is not None else None,
        **body.model_dump(),
    )
    db.add(application)
    await db.flush()
    await db.refresh(application)
    logger.info("Application %d submitted (user=%s)", application.id, application.user_id)

    await _notify(mailer, application)
    return application


@router.get("", response_model=List[ApplicationResponse])
async def list_applications(
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> List[Application]:
    """Reviewers see every application; anyone else sees their own."""
    stmt = select(Application)
    if not _is_reviewer(context):
        stmt = stmt.where(Application.user_id == context.user_id)
    if status_filter is not None:
        stmt = stmt.where(Application.status == status_filter.value)
    result = await db.execute(stmt.order_by(Application.created_at.desc(), Application.id.desc()))
    return list(result.scalars().all())


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: int,
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> Application:
    application = await _load_application(db, application_id)
    if not _is_reviewer(context) and application.user_id != context.user_id:
        raise Forbidden("Access denied")
    return application


@router.put("/{application_id}/status", response_model=ApplicationResponse)
async def update_application_status(
    application_id: int,
    body: ApplicationStatusUpdate,
    reviewer: RequestContext = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> Application:
    """
    Approve or reject an application.

    The applicant is emailed only when the status actually changes to a
    decision; setting it back to pending is silent.
    """
    application = await _load_application(db, application_id)
    previous = application.status
    application.status = body.status.value
    application.status_reason = body.reason if body.status is ApplicationStatus.REJECTED else None
    await db.flush()
    await db.refresh(application)
    logger.info(
        "Application %d: %s -> %s by %s", application.id, previous, application.status, reviewer.user_id
    )

    if application.status != previous and body.status is not ApplicationStatus.PENDING:
        await _notify(mailer, application, body.reason)
    return application
