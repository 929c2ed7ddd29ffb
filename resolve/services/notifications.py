"""
In-app notifications.

Deadline reminders, idle-case nudges and a weekly legal tip are generated on
demand from the user's cases.  Listings hide expired entries and put the most
urgent first, newest first within a priority.
"""
from __future__ import annotations

import dataclasses
import logging
import math
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import case as sql_case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.errors import NotFound
from resolve.models.database_models import (
    Case,
    CaseStatus,
    Notification,
    NotificationPriority,
    NotificationStatus,
)
from resolve.models.schemas import NotificationSummary
from resolve.services.policy import RequestContext, ensure_owner_or_admin
from resolve.utils.helpers import as_aware, utcnow

logger = logging.getLogger(__name__)

PRIORITY_RANK = {
    NotificationPriority.CRITICAL.value: 4,
    NotificationPriority.HIGH.value: 3,
    NotificationPriority.MEDIUM.value: 2,
    NotificationPriority.LOW.value: 1,
}

DEADLINE_WINDOW_DAYS = 7
DEADLINE_REPEAT = timedelta(hours=24)
IDLE_CASE_DAYS = 7
SUGGESTION_LIFETIME = timedelta(days=7)


@dataclasses.dataclass(frozen=True)
class LegalTip:
    title: str
    message: str
    category: str


LEGAL_TIPS = (
    LegalTip(
        "📚 Legal Tip: Documentation",
        "Always keep detailed records of all communications and work performed. "
        "This strengthens your position in disputes.",
        "general",
    ),
    LegalTip(
        "💰 Payment Tip: Invoicing",
        "Send invoices immediately upon completion. Include clear payment terms and due dates.",
        "payment_disputes",
    ),
    LegalTip(
        "📋 Contract Tip: Scope Definition",
        "Define scope of work clearly in contracts to avoid disputes about additional charges.",
        "contract_issues",
    ),
)


def _live(now: datetime):
    return or_(Notification.expires_at.is_(None), Notification.expires_at > now)


def _urgency_order():
    return sql_case(PRIORITY_RANK, value=Notification.priority, else_=1).desc()


async def list_notifications(
    db: AsyncSession,
    user_id: str,
    *,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    type_: Optional[str] = None,
    category: Optional[str] = None,
    limit: Optional[int] = 50,
    offset: int = 0,
    now: Optional[datetime] = None,
) -> List[Notification]:
    """
    Live notifications for *user_id*, most urgent first.

    Archived entries are only returned when asked for with
    ``status="archived"``.
    """
    now = now or utcnow()
    stmt = select(Notification).where(Notification.user_id == user_id, _live(now))
    if status:
        stmt = stmt.where(Notification.status == status)
    else:
        stmt = stmt.where(Notification.status != NotificationStatus.ARCHIVED.value)
    if priority:
        stmt = stmt.where(Notification.priority == priority)
    if type_:
        stmt = stmt.where(Notification.type == type_)
    if category:
        stmt = stmt.where(Notification.category == category)
    stmt = stmt.order_by(_urgency_order(), Notification.created_at.desc(), Notification.id.desc())
    result = await db.execute(stmt.offset(offset).limit(limit))
    return list(result.scalars().all())


async def summarize(db: AsyncSession, user_id: str, now: Optional[datetime] = None) -> NotificationSummary:
    notifications = await list_notifications(db, user_id, limit=None, now=now)
    return NotificationSummary(
        total=len(notifications),
        unread=sum(1 for n in notifications if n.status == NotificationStatus.UNREAD.value),
        critical=sum(1 for n in notifications if n.priority == NotificationPriority.CRITICAL.value),
        high=sum(1 for n in notifications if n.priority == NotificationPriority.HIGH.value),
        by_type=dict(Counter(n.type for n in notifications)),
    )


async def get_owned(db: AsyncSession, notification_id: int, context: RequestContext) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None:
        raise NotFound("Notification not found")
    ensure_owner_or_admin(notification.user_id, context)
    return notification


def mark_read(notification: Notification) -> None:
    if notification.status == NotificationStatus.UNREAD.value:
        notification.status = NotificationStatus.READ.value
        notification.read_at = utcnow()


def archive(notification: Notification) -> None:
    notification.status = NotificationStatus.ARCHIVED.value
    notification.archived_at = utcnow()


async def mark_all_read(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.status == NotificationStatus.UNREAD.value)
        .values(status=NotificationStatus.READ.value, read_at=utcnow())
    )
    return result.rowcount or 0


async def delete_notification(db: AsyncSession, notification: Notification) -> None:
    await db.delete(notification)
    await db.flush()


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def days_until(deadline: datetime, now: datetime) -> int:
    """Whole days until *deadline*, rounded up."""
    return math.ceil((as_aware(deadline) - now).total_seconds() / 86400)


def deadline_reminder(case: Case, days: int):
    """Priority, title and message for a deadline *days* away, or None when it is not yet due."""
    if days <= 1:
        if days < 0:
            return (NotificationPriority.CRITICAL, "🚨 Deadline Passed",
                    f'Your case "{case.title}" deadline has passed. Take immediate action.')
        return (NotificationPriority.CRITICAL, "🚨 Deadline Today!",
                f'Your case "{case.title}" deadline is today. Take immediate action.')
    if days <= 3:
        return (NotificationPriority.HIGH, "⚠️ Deadline Approaching",
                f'Your case "{case.title}" deadline is in {days} days.')
    if days <= DEADLINE_WINDOW_DAYS:
        return (NotificationPriority.MEDIUM, "📅 Deadline Reminder",
                f'Your case "{case.title}" deadline is in {days} days.')
    return None


async def _recent_for_case(db: AsyncSession, user_id: str, case_id: int, type_: str, since: datetime) -> bool:
    result = await db.execute(
        select(Notification.id).where(
            Notification.user_id == user_id,
            Notification.type == type_,
            Notification.related_type == "case",
            Notification.related_id == case_id,
            Notification.created_at > since,
        ).limit(1)
    )
    return result.first() is not None


async def _open_cases(db: AsyncSession, user_id: str) -> List[Case]:
    result = await db.execute(
        select(Case).where(Case.user_id == user_id, Case.status == CaseStatus.ACTIVE.value).order_by(Case.id)
    )
    return list(result.scalars().all())


async def create_deadline_notifications(db: AsyncSession, user_id: str, now: Optional[datetime] = None) -> int:
    """
    One reminder per open case whose deadline is within a week, at most once
    every 24 hours per case.
    """
    now = now or utcnow()
    created = 0
    for case in await _open_cases(db, user_id):
        if case.deadline_date is None:
            continue
        days = days_until(case.deadline_date, now)
        reminder = deadline_reminder(case, days)
        if reminder is None:
            continue
        if await _recent_for_case(db, user_id, case.id, "deadline", now - DEADLINE_REPEAT):
            continue
        priority, title, message = reminder
        db.add(Notification(
            user_id=user_id,
            title=title,
            message=message,
            type="deadline",
            priority=priority.value,
            category="payment_disputes",
            related_id=case.id,
            related_type="case",
            action_url=f"/cases/{case.id}",
            action_label="View Case",
            details={"days_until_deadline": days, "deadline_date": as_aware(case.deadline_date).isoformat()},
            created_at=now,
        ))
        created += 1
    await db.flush()
    return created


async def create_smart_notifications(db: AsyncSession, user_id: str, now: Optional[datetime] = None) -> int:
    """
    Nudge cases left open for a week and post the tip of the week.

    Both kinds expire after seven days and are not repeated while a previous
    one is still live.
    """
    now = now or utcnow()
    expires = now + SUGGESTION_LIFETIME
    created = 0

    for case in await _open_cases(db, user_id):
        open_days = (now - as_aware(case.created_at)).days
        if open_days < IDLE_CASE_DAYS:
            continue
        if await _recent_for_case(db, user_id, case.id, "action_required", now - SUGGESTION_LIFETIME):
            continue
        db.add(Notification(
            user_id=user_id,
            title="💡 Case Action Needed",
            message=f'Your case "{case.title}" has been open for {open_days} days. Consider taking the next step.',
            type="action_required",
            priority=NotificationPriority.MEDIUM.value,
            category="payment_disputes",
            related_id=case.id,
            related_type="case",
            action_url=f"/cases/{case.id}",
            action_label="Review Case",
            expires_at=expires,
            created_at=now,
        ))
        created += 1

    live_tip = await db.execute(
        select(Notification.id)
        .where(Notification.user_id == user_id, Notification.type == "legal_tip", _live(now))
        .limit(1)
    )
    if live_tip.first() is None:
        tip = LEGAL_TIPS[now.isocalendar()[1] % len(LEGAL_TIPS)]
        db.add(Notification(
            user_id=user_id,
            title=tip.title,
            message=tip.message,
            type="legal_tip",
            priority=NotificationPriority.LOW.value,
            category=tip.category,
            action_url="/dashboard",
            action_label="Learn More",
            expires_at=expires,
            created_at=now,
        ))
        created += 1

    await db.flush()
    return created
