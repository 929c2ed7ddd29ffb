"""
Dashboard insights endpoint.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.database import get_db
from resolve.dependencies.auth import get_current_context
from resolve.models.schemas import InsightReport
from resolve.services.insights import LegalInsightsService, get_insights_service
from resolve.services.policy import RequestContext

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=InsightReport)
async def get_dashboard_insights(
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
    service: LegalInsightsService = Depends(get_insights_service),
) -> InsightReport:
    """
    Personalised insights for the dashboard.

    Never fails once the caller is authenticated: ``source`` is ``fallback``
    whenever the language model could not be used.
    """
    report = await service.generate_personalized_insights(db, context.user_id)
    logger.info("Served %s insights to user %s", report.source.value, context.user_id)
    return report
