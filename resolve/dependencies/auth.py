"""
Authentication dependencies for FastAPI routes.

Resolves the ``Authorization: Bearer <token>`` header against the identity
provider, makes sure a local user row exists, and hands the route an explicit
``RequestContext``.  Role policies are layered on top with ``require_role``.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Cookie, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.config import settings
from resolve.database import get_db
from resolve.errors import Unauthorized
from resolve.models.database_models import Role, User
from resolve.services import accounts
from resolve.services.identity import SupabaseAuthClient, get_identity_provider
from resolve.services.policy import (
    ADMIN_ONLY,
    ADMIN_OR_MODERATOR,
    Policy,
    RequestContext,
    authorize,
)

logger = logging.getLogger(__name__)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from a ``Bearer <token>`` header value, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def resolve_token(
    token: Optional[str],
    db: AsyncSession,
    idp: SupabaseAuthClient,
) -> RequestContext:
    """Introspect *token*, provision the local user and build the context."""
    if not token:
        raise Unauthorized("Access token required")

    identity = await idp.get_user(token)
    user = await accounts.ensure_user_profile(db, identity)
    return RequestContext(
        user_id=user.id,
        role=Role.parse(user.role),
        email=identity.email or user.email,
    )


async def get_current_context(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    idp: SupabaseAuthClient = Depends(get_identity_provider),
) -> RequestContext:
    """Require a valid bearer token. Raises 401 otherwise."""
    return await resolve_token(extract_bearer_token(authorization), db, idp)


async def get_optional_context(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    idp: SupabaseAuthClient = Depends(get_identity_provider),
) -> Optional[RequestContext]:
    """Resolve the caller if possible; anonymous (None) on a missing or bad token."""
    token = extract_bearer_token(authorization)
    if not token:
        return None
    try:
        return await resolve_token(token, db, idp)
    except Unauthorized:
        return None


async def get_download_context(
    authorization: Optional[str] = Header(None),
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    idp: SupabaseAuthClient = Depends(get_identity_provider),
) -> RequestContext:
    """
    Like ``get_current_context`` but falls back to ``?token=`` for image and
    iframe tags that cannot set headers.
    """
    return await resolve_token(extract_bearer_token(authorization) or token, db, idp)


async def get_current_user(
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The caller's local user row."""
    return await accounts.require_user(db, context.user_id)


def require_role(policy: Policy):
    """
    Build a dependency that admits only callers whose role is in *policy*.

    The admin panel session cookie is read first, a bearer token second, so
    the same gate serves the admin UI and API clients.  A cookie that no
    longer resolves does not shadow a valid bearer token.
    """

    async def _dependency(
        session_token: Optional[str] = Cookie(None, alias=settings.ADMIN_SESSION_COOKIE),
        authorization: Optional[str] = Header(None),
        db: AsyncSession = Depends(get_db),
        idp: SupabaseAuthClient = Depends(get_identity_provider),
    ) -> RequestContext:
        bearer = extract_bearer_token(authorization)
        context = None
        if session_token:
            try:
                context = await resolve_token(session_token, db, idp)
            except Unauthorized:
                if not bearer:
                    raise
                logger.info("Stale admin session cookie; falling back to bearer token")
        if context is None and bearer:
            context = await resolve_token(bearer, db, idp)
        return authorize(policy, context)

    return _dependency


require_admin = require_role(ADMIN_ONLY)
require_moderator = require_role(ADMIN_OR_MODERATOR)
