"""
Authenticated user, profile and subscription endpoints.

GET /auth/user            the caller's profile (provisioned on first call)
GET /user/profile         same, for the profile page
PUT /user/profile         edit names and avatar
GET /subscription/status  whether the caller may open a new case
"""
import dataclasses

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.database import get_db
from resolve.dependencies.auth import get_current_user
from resolve.models.database_models import User
from resolve.models.schemas import (
    SubscriptionStatusResponse,
    UserProfileResponse,
    UserProfileUpdate,
)
from resolve.services import accounts
from resolve.utils.helpers import apply_partial_update

router = APIRouter()


@router.get("/auth/user", response_model=UserProfileResponse)
async def get_auth_user(user: User = Depends(get_current_user)) -> User:
    return user


@router.get("/user/profile", response_model=UserProfileResponse)
async def get_profile(user: User = Depends(get_current_user)) -> User:
    return user


@router.put("/user/profile", response_model=UserProfileResponse)
async def update_profile(
    body: UserProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    apply_partial_update(user, body)
    await db.flush()
    await db.refresh(user)
    return user


@router.get("/subscription/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(user: User = Depends(get_current_user)) -> SubscriptionStatusResponse:
    check = accounts.check_subscription_status(user)
    return SubscriptionStatusResponse(**dataclasses.asdict(check))
