"""Timeline events recorded against cases and contracts."""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.models.database_models import TimelineEvent


async def record_event(
    db: AsyncSession,
    *,
    user_id: str,
    event_type: str,
    title: str,
    description: Optional[str] = None,
    case_id: Optional[int] = None,
    contract_id: Optional[int] = None,
    is_completed: bool = True,
) -> TimelineEvent:
    event = TimelineEvent(
        user_id=user_id,
        case_id=case_id,
        contract_id=contract_id,
        event_type=event_type,
        title=title,
        description=description,
        is_completed=is_completed,
    )
    db.add(event)
    await db.flush()
    return event


async def list_events(
    db: AsyncSession,
    *,
    case_id: Optional[int] = None,
    contract_id: Optional[int] = None,
) -> List[TimelineEvent]:
    """Events for one case or contract, newest first."""
    stmt = select(TimelineEvent)
    if case_id is not None:
        stmt = stmt.where(TimelineEvent.case_id == case_id)
    if contract_id is not None:
        stmt = stmt.where(TimelineEvent.contract_id == contract_id)
    stmt = stmt.order_by(TimelineEvent.event_date.desc(), TimelineEvent.id.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())
