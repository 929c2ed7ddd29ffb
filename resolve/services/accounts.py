"""
Local user accounts and subscription state.

Accounts are mirrored lazily from the identity provider: the first
authenticated request for an identity inserts a row with the initial
strategy-pack grant; later requests leave existing rows alone.
"""
from __future__ import annotations

import dataclasses
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.config import settings
from resolve.errors import NotFound
from resolve.models.database_models import PlanType, Role, SubscriptionStatus, User
from resolve.services.identity import IdentityUser
from resolve.utils.helpers import as_aware, utcnow

logger = logging.getLogger(__name__)

MONTHLY_PERIOD = timedelta(days=30)


@dataclasses.dataclass
class SubscriptionCheck:
    can_create_cases: bool
    plan_type: str
    status: str
    message: Optional[str] = None
    strategy_packs_remaining: Optional[int] = None


async def get_user(db: AsyncSession, user_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_stripe_ids(
    db: AsyncSession,
    subscription_id: Optional[str],
    customer_id: Optional[str],
) -> Optional[User]:
    """Find the account a Stripe subscription or customer belongs to."""
    if subscription_id:
        result = await db.execute(select(User).where(User.stripe_subscription_id == subscription_id))
        user = result.scalar_one_or_none()
        if user is not None:
            return user
    if customer_id:
        result = await db.execute(select(User).where(User.stripe_customer_id == customer_id))
        return result.scalars().first()
    return None


async def ensure_user_profile(db: AsyncSession, identity: IdentityUser) -> User:
    """
    Insert the local row for *identity* if it is missing and return it.

    Existing rows are returned untouched so profile edits survive later logins.
    """
    user = await get_user(db, identity.id)
    if user is not None:
        return user

    meta = identity.user_metadata
    user = User(
        id=identity.id,
        email=identity.email,
        first_name=meta.get("first_name") or meta.get("username"),
        last_name=meta.get("last_name"),
        profile_image_url=meta.get("avatar_url"),
        role=Role.USER.value,
        subscription_status=SubscriptionStatus.ACTIVE.value,
        plan_type=PlanType.STRATEGY_PACK.value,
        strategy_packs_remaining=settings.INITIAL_STRATEGY_PACKS,
        has_initial_strategy_pack=True,
    )
    db.add(user)
    await db.flush()
    logger.info("Created new user: id=%s email=%s", user.id, user.email)
    return user


async def require_user(db: AsyncSession, user_id: str) -> User:
    user = await get_user(db, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def _monthly_active(user: User) -> bool:
    expires = as_aware(user.subscription_expires_at)
    return (
        user.plan_type == PlanType.MONTHLY_SUBSCRIPTION.value
        and user.subscription_status == SubscriptionStatus.ACTIVE.value
        and expires is not None
        and expires > utcnow()
    )


def check_subscription_status(user: Optional[User]) -> SubscriptionCheck:
    """Decide whether *user* may open a new case and why."""
    if user is None:
        return SubscriptionCheck(
            can_create_cases=False,
            plan_type=PlanType.NONE.value,
            status="no_user",
            message="User not found",
        )

    if _monthly_active(user):
        return SubscriptionCheck(
            can_create_cases=True,
            plan_type=PlanType.MONTHLY_SUBSCRIPTION.value,
            status=SubscriptionStatus.ACTIVE.value,
            message="Active monthly subscription - unlimited cases",
        )

    remaining = user.strategy_packs_remaining or 0
    if user.plan_type == PlanType.STRATEGY_PACK.value and remaining > 0:
        plural = "" if remaining == 1 else "s"
        return SubscriptionCheck(
            can_create_cases=True,
            plan_type=PlanType.STRATEGY_PACK.value,
            status=SubscriptionStatus.ACTIVE.value,
            message=f"{remaining} strategy pack{plural} remaining",
            strategy_packs_remaining=remaining,
        )

    return SubscriptionCheck(
        can_create_cases=False,
        plan_type=user.plan_type or PlanType.NONE.value,
        status=user.subscription_status or SubscriptionStatus.NONE.value,
        message="No active subscription or strategy packs available",
        strategy_packs_remaining=remaining,
    )


def consume_strategy_pack(user: User) -> bool:
    """Take one credit from *user*; False when there is none to take."""
    if not user.strategy_packs_remaining or user.strategy_packs_remaining <= 0:
        return False
    user.strategy_packs_remaining -= 1
    logger.info("User %s consumed a strategy pack (%d left)", user.id, user.strategy_packs_remaining)
    return True


def grant_strategy_pack(user: User, count: int = 1) -> None:
    user.plan_type = PlanType.STRATEGY_PACK.value
    user.subscription_status = SubscriptionStatus.ACTIVE.value
    user.strategy_packs_remaining = (user.strategy_packs_remaining or 0) + count
    logger.info("Granted %d strategy pack(s) to user %s", count, user.id)


def activate_monthly_subscription(user: User) -> None:
    user.plan_type = PlanType.MONTHLY_SUBSCRIPTION.value
    user.subscription_status = SubscriptionStatus.ACTIVE.value
    user.subscription_expires_at = utcnow() + MONTHLY_PERIOD
    logger.info("Activated monthly subscription for user %s", user.id)
