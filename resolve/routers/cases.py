"""
Case endpoints: CRUD, mood tracking, timeline, case insights, strategy packs and
case-scoped documents.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.database import get_db
from resolve.dependencies.auth import get_current_context, get_current_user
from resolve.dependencies.records import get_authorized_case
from resolve.errors import PaymentRequired
from resolve.models.database_models import Case, PlanType, User
from resolve.models.schemas import (
    CaseCreateRequest,
    CaseResponse,
    CaseUpdateRequest,
    DocumentResponse,
    Insight,
    MoodResponse,
    MoodUpdateRequest,
    StrategyPackResponse,
    TimelineEventResponse,
)
from resolve.services import accounts, mood
from resolve.services.document_service import (
    DocumentService,
    document_response,
    get_document_service,
)
from resolve.services.insights import LegalInsightsService, get_insights_service
from resolve.services.policy import RequestContext
from resolve.services.timeline import list_events, record_event
from resolve.utils.helpers import apply_partial_update, generate_reference_number

logger = logging.getLogger(__name__)

router = APIRouter()


# ═══════════════════════════════════════════════════════════════════════════════
# CASE CRUD
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("", response_model=CaseResponse, status_code=status.HTTP_201_CREATED)
async def create_case(
    body: CaseCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Case:
    """
    Open a new case.

    Users on a strategy-pack plan spend one pack per case; an active monthly
    subscription creates cases without spending anything.
    """
    check = accounts.check_subscription_status(user)
    if not check.can_create_cases:
        raise PaymentRequired(check.message or "")
    if check.plan_type == PlanType.STRATEGY_PACK.value and not accounts.consume_strategy_pack(user):
        raise PaymentRequired()

    case = Case(
        user_id=user.id,
        case_number=generate_reference_number("CASE"),
        **body.model_dump(),
    )
    db.add(case)
    await db.flush()

    await record_event(
        db,
        user_id=user.id,
        case_id=case.id,
        event_type="case_created",
        title="Case created",
        description=case.title,
    )
    await db.refresh(case)
    logger.info("Created case id=%d number=%s for user=%s", case.id, case.case_number, user.id)
    return case


@router.get("", response_model=List[CaseResponse])
async def list_cases(
    status_filter: Optional[str] = Query(None, alias="status"),
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> List[Case]:
    """The caller's cases, newest first."""
    stmt = select(Case).where(Case.user_id == context.user_id)
    if status_filter:
        stmt = stmt.where(Case.status == status_filter)
    result = await db.execute(stmt.order_by(Case.created_at.desc(), Case.id.desc()))
    return list(result.scalars().all())


@router.get("/{case_id}", response_model=CaseResponse)
async def get_case(case: Case = Depends(get_authorized_case)) -> Case:
    return case


@router.put("/{case_id}", response_model=CaseResponse)
async def update_case(
    body: CaseUpdateRequest,
    case: Case = Depends(get_authorized_case),
    db: AsyncSession = Depends(get_db),
) -> Case:
    changed = apply_partial_update(case, body)
    if "status" in changed:
        await record_event(
            db,
            user_id=case.user_id,
            case_id=case.id,
            event_type="status_changed",
            title=f"Status changed to {case.status}",
        )
    await db.flush()
    await db.refresh(case)
    logger.info("Updated case id=%d fields=%s", case.id, changed)
    return case


# ═══════════════════════════════════════════════════════════════════════════════
# MOOD
# ═══════════════════════════════════════════════════════════════════════════════

@router.patch("/{case_id}/mood", response_model=MoodResponse)
async def update_case_mood(
    body: MoodUpdateRequest,
    case: Case = Depends(get_authorized_case),
    db: AsyncSession = Depends(get_db),
) -> MoodResponse:
    """Record how the case feels right now; the response carries the derived summary."""
    mood.apply_mood_update(case, body)
    response = mood.mood_response(case)
    await record_event(
        db,
        user_id=case.user_id,
        case_id=case.id,
        event_type="mood_updated",
        title="Mood updated",
        description=response.mood_summary,
    )
    await db.flush()
    return response


# ═══════════════════════════════════════════════════════════════════════════════
# TIMELINE / INSIGHTS
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/{case_id}/timeline", response_model=List[TimelineEventResponse])
async def get_case_timeline(
    case: Case = Depends(get_authorized_case),
    db: AsyncSession = Depends(get_db),
):
    return await list_events(db, case_id=case.id)


@router.get("/{case_id}/insights", response_model=List[Insight])
async def get_case_insights(
    case_id: int,
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
    service: LegalInsightsService = Depends(get_insights_service),
) -> List[Insight]:
    """Next-steps insight for one of the caller's cases; empty when not theirs."""
    return await service.get_case_insights(db, case_id, context.user_id)


@router.post("/{case_id}/generate-strategy", response_model=StrategyPackResponse)
async def generate_strategy(
    case: Case = Depends(get_authorized_case),
    db: AsyncSession = Depends(get_db),
) -> StrategyPackResponse:
    """Record that the strategy pack for this case has been generated."""
    event = await record_event(
        db,
        user_id=case.user_id,
        case_id=case.id,
        event_type="strategy_generated",
        title="Strategy Pack Generated",
        description="AI-powered strategy pack has been generated for this case",
    )
    logger.info("Strategy pack generated for case %d", case.id)
    return StrategyPackResponse(case_id=case.id, event_id=event.id)


# ═══════════════════════════════════════════════════════════════════════════════
# CASE-SCOPED DOCUMENTS
# ═══════════════════════════════════════════════════════════════════════════════

@router.post(
    "/{case_id}/upload",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_case_document(
    case_id: int,
    file: UploadFile = File(...),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    context: RequestContext = Depends(get_current_context),
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    document = await service.upload(
        context, file, category=category, case_id=case_id, description=description
    )
    return document_response(document)


@router.get("/{case_id}/documents", response_model=List[DocumentResponse])
async def list_case_documents(
    case_id: int,
    context: RequestContext = Depends(get_current_context),
    service: DocumentService = Depends(get_document_service),
) -> List[DocumentResponse]:
    return [document_response(d) for d in await service.list_for_case(case_id, context)]
