"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.config import settings
from resolve.database import get_db, ping
from resolve.models.schemas import HealthCheckResponse
from resolve.utils.helpers import utcnow

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Report database reachability and how the optional integrations are set up.

    ``llm`` is ``fallback`` when no model key is configured (dashboard insights
    use static content); ``email`` is ``dev`` when SMTP is not configured
    (messages are logged, not sent).
    """
    db_ok = await ping(db)
    return HealthCheckResponse(
        status="healthy" if db_ok else "degraded",
        database="ok" if db_ok else "error",
        llm="configured" if settings.llm_enabled else "fallback",
        email="smtp" if settings.smtp_configured else "dev",
        timestamp=utcnow(),
    )
