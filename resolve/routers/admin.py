"""
Admin panel endpoints.

The panel signs in with email and password; the resulting access token is kept
in an HTTP-only ``admin_session`` cookie.  Every other admin route accepts that
cookie or a bearer token whose role passes the route's policy.
"""
from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from typing import List, Optional

from fastapi import APIRouter, Cookie, Depends, Query, Response
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.config import settings
from resolve.database import get_db
from resolve.dependencies.auth import require_admin, require_moderator, resolve_token
from resolve.errors import NotFound, Unauthorized, ValidationFailed
from resolve.models.database_models import (
    Application,
    ApplicationStatus,
    Case,
    CaseStatus,
    Document,
    Role,
    SubscriptionStatus,
    User,
)
from resolve.models.schemas import (
    AdminLoginRequest,
    AdminSessionResponse,
    AdminStatsResponse,
    CaseResponse,
    RoleUpdateRequest,
    SendDocumentationRequest,
    SendDocumentationResponse,
    UserProfileResponse,
)
from resolve.services import accounts
from resolve.services.email_service import Mailer, get_mailer
from resolve.services.identity import SupabaseAuthClient, get_identity_provider
from resolve.services.policy import RequestContext
from resolve.utils.helpers import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


def _session_expiry() -> datetime:
    return utcnow() + timedelta(hours=settings.ADMIN_SESSION_HOURS)


# ═══════════════════════════════════════════════════════════════════════════════
# SESSION
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/login", response_model=AdminSessionResponse)
async def admin_login(
    body: AdminLoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    idp: SupabaseAuthClient = Depends(get_identity_provider),
) -> AdminSessionResponse:
    """Password sign-in for the admin panel; only the admin role gets a session."""
    token, identity = await idp.sign_in_with_password(body.email, body.password)
    user = await accounts.ensure_user_profile(db, identity)
    if Role.parse(user.role) is not Role.ADMIN:
        logger.warning("Admin login refused for %s (role=%s)", body.email, user.role)
        raise Unauthorized("Admin access required")

    response.set_cookie(
        key=settings.ADMIN_SESSION_COOKIE,
        value=token,
        max_age=settings.ADMIN_SESSION_HOURS * 3600,
        httponly=True,
        secure=settings.ADMIN_COOKIE_SECURE,
        samesite="strict",
    )
    logger.info("Admin %s signed in", user.email)
    return AdminSessionResponse(user_id=user.id, email=user.email, expires_at=_session_expiry())


@router.post("/logout")
async def admin_logout(
    response: Response,
    session_token: Optional[str] = Cookie(None, alias=settings.ADMIN_SESSION_COOKIE),
    idp: SupabaseAuthClient = Depends(get_identity_provider),
):
    if session_token and not await idp.sign_out(session_token):
        logger.warning("Admin session could not be revoked upstream; clearing cookie anyway")
    response.delete_cookie(settings.ADMIN_SESSION_COOKIE)
    return {"message": "Logged out successfully"}


@router.get("/session", response_model=AdminSessionResponse)
async def admin_session(
    session_token: Optional[str] = Cookie(None, alias=settings.ADMIN_SESSION_COOKIE),
    db: AsyncSession = Depends(get_db),
    idp: SupabaseAuthClient = Depends(get_identity_provider),
) -> AdminSessionResponse:
    if not session_token:
        raise Unauthorized("No admin session token")
    context = await resolve_token(session_token, db, idp)
    if not context.is_admin:
        raise Unauthorized("Invalid admin session")
    return AdminSessionResponse(user_id=context.user_id, email=context.email, expires_at=_session_expiry())


# ═══════════════════════════════════════════════════════════════════════════════
# CASES / USERS
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/cases", response_model=List[CaseResponse])
async def admin_list_cases(
    status_filter: Optional[CaseStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    context: RequestContext = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> List[Case]:
    """All cases across users, newest first."""
    stmt = select(Case)
    if status_filter is not None:
        stmt = stmt.where(Case.status == status_filter.value)
    stmt = stmt.order_by(Case.created_at.desc(), Case.id.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


@router.get("/users", response_model=List[UserProfileResponse])
async def admin_list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    context: RequestContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> List[User]:
    result = await db.execute(
        select(User).order_by(User.created_at.desc(), User.id).offset(skip).limit(limit)
    )
    return list(result.scalars().all())


@router.put("/users/{user_id}/role", response_model=UserProfileResponse)
async def admin_update_role(
    user_id: str,
    body: RoleUpdateRequest,
    context: RequestContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> User:
    if user_id == context.user_id and body.role is not Role.ADMIN:
        raise ValidationFailed("Admins cannot remove their own admin role")

    user = await accounts.get_user(db, user_id)
    if user is None:
        raise NotFound("User not found")
    user.role = body.role.value
    await db.flush()
    await db.refresh(user)
    logger.info("Admin %s set role of %s to %s", context.user_id, user_id, body.role.value)
    return user


# ═══════════════════════════════════════════════════════════════════════════════
# STATS / EMAIL
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/stats", response_model=AdminStatsResponse)
async def admin_stats(
    context: RequestContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminStatsResponse:
    start_of_day = datetime.combine(utcnow().date(), time.min, tzinfo=utcnow().tzinfo)

    async def count(stmt) -> int:
        return (await db.execute(stmt)).scalar() or 0

    return AdminStatsResponse(
        total_users=await count(select(func.count(User.id))),
        new_users_today=await count(select(func.count(User.id)).where(User.created_at >= start_of_day)),
        total_cases=await count(select(func.count(Case.id))),
        active_cases=await count(
            select(func.count(Case.id)).where(Case.status == CaseStatus.ACTIVE.value)
        ),
        total_documents=await count(select(func.count(Document.id))),
        active_subscriptions=await count(
            select(func.count(User.id)).where(
                User.subscription_status == SubscriptionStatus.ACTIVE.value
            )
        ),
        pending_applications=await count(
            select(func.count(Application.id)).where(Application.status == ApplicationStatus.PENDING.value)
        ),
    )


@router.post("/send-documentation", response_model=SendDocumentationResponse)
async def send_documentation(
    body: SendDocumentationRequest,
    context: RequestContext = Depends(require_admin),
    mailer: Mailer = Depends(get_mailer),
) -> SendDocumentationResponse:
    result = await mailer.send_documentation(body)
    logger.info(
        "Admin %s sent documentation %r to %s: %s",
        context.user_id, body.document_title, body.recipient_email, result.message,
    )
    return result
