"""
Personalised legal insights for the dashboard.

The language model is asked once per dashboard load for up to five insights
about the caller's cases.  Industry trends and legal tips are static content.
Whatever goes wrong (no API key, network error, bad JSON, database error) the
caller gets the fallback set, tagged ``source="fallback"``, never an exception.

Public API
----------
LegalInsightsService.generate_personalized_insights(db, user_id) -> InsightReport
LegalInsightsService.get_case_insights(db, case_id, user_id)     -> List[Insight]
"""
from __future__ import annotations

import json
import logging
import re
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.config import settings
from resolve.models.database_models import Case, Contract
from resolve.models.schemas import (
    DashboardInsights,
    Insight,
    InsightCategory,
    InsightMetadata,
    InsightPriority,
    InsightReport,
    InsightSource,
    InsightType,
)
from resolve.utils.helpers import epoch_millis, truncate_text, utcnow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_INSIGHT_PROMPT = """\
As a legal AI assistant for Australian tradespeople, analyze these cases and generate personalized legal insights:

Cases: {cases}

Contracts: {contracts}

Generate insights in JSON format with this structure:
{{
  "insights": [
    {{
      "type": "deadline_alert|case_analysis|action_required",
      "title": "Brief title",
      "content": "Detailed insight (2-3 sentences)",
      "priority": "low|medium|high|critical",
      "category": "payment_disputes|contract_issues|regulatory_compliance|general",
      "actionable": true,
      "metadata": {{
        "amount": 0,
        "daysUntil": 0,
        "legislation": "relevant law"
      }}
    }}
  ]
}}

Focus on:
1. Payment deadline alerts and SOPA requirements
2. Contract compliance issues
3. Regulatory deadlines
4. Case-specific recommendations
5. Risk assessments

Limit to 5 most relevant insights."""

MAX_MODEL_INSIGHTS = 5
INSIGHT_TTL = timedelta(days=7)
DESCRIPTION_LIMIT = 200

# Bucket caps; truncation keeps the earliest items.
URGENT_ALERT_LIMIT = 3
CASE_ANALYSIS_LIMIT = 2
INDUSTRY_TREND_LIMIT = 2
LEGAL_TIP_LIMIT = 3
ACTION_ITEM_LIMIT = 4

_GENERATED_BUCKETS = {
    InsightType.DEADLINE_ALERT: ("urgent_alerts", URGENT_ALERT_LIMIT),
    InsightType.CASE_ANALYSIS: ("case_analysis", CASE_ANALYSIS_LIMIT),
    InsightType.ACTION_REQUIRED: ("action_items", ACTION_ITEM_LIMIT),
}

_ISSUE_CATEGORIES = {
    "payment_dispute": InsightCategory.PAYMENT_DISPUTES,
    "contract_issue": InsightCategory.CONTRACT_ISSUES,
    "regulatory_compliance": InsightCategory.REGULATORY_COMPLIANCE,
}


# ---------------------------------------------------------------------------
# Static content
# ---------------------------------------------------------------------------

def industry_trends() -> List[Insight]:
    return [
        Insight(
            id="trend-1",
            type=InsightType.INDUSTRY_TREND,
            title="SOPA Payment Times Decreasing",
            content=(
                "Recent data shows payment times under Security of Payment Act have "
                "improved by 15% in 2024, with more contractors receiving payments "
                "within statutory timeframes."
            ),
            priority=InsightPriority.MEDIUM,
            category=InsightCategory.PAYMENT_DISPUTES,
            actionable=False,
            metadata=InsightMetadata(legislation="Security of Payment Act"),
        ),
        Insight(
            id="trend-2",
            type=InsightType.INDUSTRY_TREND,
            title="Contract Disputes Rising",
            content=(
                "Contract variation disputes have increased 23% this year. Ensure all "
                "variations are documented in writing and signed before work commences."
            ),
            priority=InsightPriority.MEDIUM,
            category=InsightCategory.CONTRACT_ISSUES,
            actionable=True,
        ),
    ]


def legal_tips() -> List[Insight]:
    return [
        Insight(
            id="tip-1",
            type=InsightType.LEGAL_TIP,
            title="Document Everything",
            content=(
                "Always keep detailed records of variations, delays, and additional work. "
                "Photos with timestamps are powerful evidence in disputes."
            ),
            priority=InsightPriority.MEDIUM,
            category=InsightCategory.GENERAL,
            actionable=True,
        ),
        Insight(
            id="tip-2",
            type=InsightType.LEGAL_TIP,
            title="SOPA Notice Timing",
            content=(
                "Payment claims under SOPA must be served within specified timeframes. "
                "Missing deadlines can invalidate your claim entirely."
            ),
            priority=InsightPriority.HIGH,
            category=InsightCategory.PAYMENT_DISPUTES,
            actionable=True,
            metadata=InsightMetadata(legislation="SOPA"),
        ),
        Insight(
            id="tip-3",
            type=InsightType.LEGAL_TIP,
            title="Retention Release",
            content=(
                "You can claim retention money 30 days after practical completion. "
                "Don't wait - set calendar reminders for retention release dates."
            ),
            priority=InsightPriority.MEDIUM,
            category=InsightCategory.PAYMENT_DISPUTES,
            actionable=True,
        ),
    ]


def fallback_insights() -> DashboardInsights:
    """Generic content served when nothing personalised is available."""
    return DashboardInsights(
        urgent_alerts=[
            Insight(
                id="alert-1",
                type=InsightType.DEADLINE_ALERT,
                title="Review Payment Terms",
                content=(
                    "Ensure all new contracts include clear payment terms and penalty "
                    "clauses for late payments."
                ),
                priority=InsightPriority.MEDIUM,
                category=InsightCategory.CONTRACT_ISSUES,
                actionable=True,
            )
        ],
        case_analysis=[
            Insight(
                id="analysis-1",
                type=InsightType.CASE_ANALYSIS,
                title="Stay Proactive",
                content=(
                    "Regular case reviews help identify potential issues early. Create new "
                    "cases for any payment or contract concerns."
                ),
                priority=InsightPriority.LOW,
                category=InsightCategory.GENERAL,
                actionable=True,
            )
        ],
        industry_trends=industry_trends()[:INDUSTRY_TREND_LIMIT],
        legal_tips=legal_tips()[:LEGAL_TIP_LIMIT],
        action_items=[
            Insight(
                id="action-1",
                type=InsightType.ACTION_REQUIRED,
                title="Update Contact Information",
                content="Ensure your profile has current contact details for important legal notifications.",
                priority=InsightPriority.LOW,
                category=InsightCategory.GENERAL,
                actionable=True,
            )
        ],
    )


def fallback_report() -> InsightReport:
    return InsightReport(
        source=InsightSource.FALLBACK,
        generated_at=utcnow(),
        insights=fallback_insights(),
    )


def category_for_issue(issue_type: Optional[str]) -> InsightCategory:
    return _ISSUE_CATEGORIES.get(issue_type or "", InsightCategory.GENERAL)


# ---------------------------------------------------------------------------
# Robust JSON parsing
# ---------------------------------------------------------------------------

def _try_json(text: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return False, None


def _strip_code_fences(text: str) -> str:
    """Remove ```json / ``` delimiters that models often wrap output in."""
    text = re.sub(r"^```(?:json|javascript|text)?\s*\n?", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\n?```\s*$", "", text)
    return text.strip()


def _fix_json_issues(text: str) -> str:
    """Repair trailing commas and Python-style literals."""
    text = re.sub(r",(\s*[}\]])", r"\1", text)
    text = re.sub(r"\bTrue\b", "true", text)
    text = re.sub(r"\bFalse\b", "false", text)
    text = re.sub(r"\bNone\b", "null", text)
    return text.strip()


def _extract_json_object(text: str) -> str:
    """First balanced ``{...}`` block in *text*, or ``""``."""
    start = text.find("{")
    if start == -1:
        return ""

    depth = 0
    in_string = False
    escape_next = False
    for i, ch in enumerate(text[start:], start=start):
        if escape_next:
            escape_next = False
            continue
        if ch == "\\" and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return ""


def parse_model_json(response: str) -> Optional[Dict[str, Any]]:
    """
    Parse a JSON object out of possibly messy model output.

    Tries, in order: the raw text, the text without code fences, the repaired
    text, and the first balanced object found in surrounding prose.  Returns
    None when nothing yields a JSON object.
    """
    if not response or not response.strip():
        return None

    text = _strip_code_fences(response.strip())
    candidates = [response.strip(), text, _fix_json_issues(text)]
    fragment = _extract_json_object(text)
    if fragment:
        candidates.extend([fragment, _fix_json_issues(fragment)])

    for candidate in candidates:
        ok, value = _try_json(candidate)
        if ok and isinstance(value, dict):
            return value

    logger.warning("parse_model_json: could not parse model output. Preview: %s", response[:400])
    return None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

def _coerce_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _coerce_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class LegalInsightsService:
    """Builds dashboard insights from the caller's cases and the language model."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.model = model or settings.OPENAI_MODEL
        self.timeout = httpx.Timeout(float(settings.OPENAI_TIMEOUT), connect=10.0)
        self._transport = transport

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate_personalized_insights(self, db: AsyncSession, user_id: str) -> InsightReport:
        try:
            cases = await self._load_cases(db, user_id)
            contracts = await self._load_contracts(db, user_id)
        except SQLAlchemyError as exc:
            logger.error("generate_personalized_insights: failed to load data for %s: %s", user_id, exc)
            return fallback_report()

        if not cases:
            logger.info("No cases for user %s; serving fallback insights", user_id)
            return fallback_report()

        prompt = _INSIGHT_PROMPT.format(
            cases=json.dumps([self._summarise_case(c) for c in cases], default=str),
            contracts=json.dumps([self._summarise_contract(c) for c in contracts], default=str),
        )
        raw = await self._call_model(prompt)
        parsed = parse_model_json(raw)
        if parsed is None or not isinstance(parsed.get("insights"), list):
            return fallback_report()

        generated = self._build_insights(parsed["insights"])
        insights = DashboardInsights(industry_trends=industry_trends(), legal_tips=legal_tips())
        for insight in generated:
            bucket, _ = _GENERATED_BUCKETS[insight.type]
            getattr(insights, bucket).append(insight)
        for bucket, limit in _GENERATED_BUCKETS.values():
            setattr(insights, bucket, getattr(insights, bucket)[:limit])
        insights.industry_trends = insights.industry_trends[:INDUSTRY_TREND_LIMIT]
        insights.legal_tips = insights.legal_tips[:LEGAL_TIP_LIMIT]

        logger.info("Generated %d insights for user %s", len(generated), user_id)
        return InsightReport(source=InsightSource.GENERATED, generated_at=utcnow(), insights=insights)

    async def get_case_insights(self, db: AsyncSession, case_id: int, user_id: str) -> List[Insight]:
        """One deterministic next-steps insight for a case the caller owns."""
        result = await db.execute(select(Case).where(Case.id == case_id, Case.user_id == user_id))
        case = result.scalar_one_or_none()
        if case is None:
            return []
        return [
            Insight(
                id=f"case-insight-{case.id}",
                type=InsightType.CASE_ANALYSIS,
                title="Next Steps Recommended",
                content=(
                    f"Based on your {case.issue_type} case, consider these actions to "
                    "strengthen your position."
                ),
                priority=InsightPriority.MEDIUM,
                category=category_for_issue(case.issue_type),
                actionable=True,
                related_case_id=case.id,
                metadata=InsightMetadata(amount=case.amount),
            )
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    async def _load_cases(db: AsyncSession, user_id: str) -> Sequence[Case]:
        result = await db.execute(
            select(Case).where(Case.user_id == user_id).order_by(Case.created_at.desc(), Case.id.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def _load_contracts(db: AsyncSession, user_id: str) -> Sequence[Contract]:
        result = await db.execute(
            select(Contract)
            .where(Contract.user_id == user_id)
            .order_by(Contract.created_at.desc(), Contract.id.desc())
        )
        return result.scalars().all()

    @staticmethod
    def _summarise_case(case: Case) -> Dict[str, Any]:
        return {
            "type": case.issue_type,
            "amount": case.amount,
            "status": case.status,
            "deadline_date": case.deadline_date.isoformat() if case.deadline_date else None,
            "description": truncate_text(case.description or "", DESCRIPTION_LIMIT, suffix=""),
        }

    @staticmethod
    def _summarise_contract(contract: Contract) -> Dict[str, Any]:
        return {
            "title": contract.title,
            "status": contract.status,
            "value": contract.value,
            "end_date": contract.end_date.isoformat() if contract.end_date else None,
        }

    def _build_insights(self, items: List[Any]) -> List[Insight]:
        """Normalise model items; items of an unknown type are dropped."""
        now = utcnow()
        millis = epoch_millis()
        insights: List[Insight] = []
        for index, item in enumerate(items[:MAX_MODEL_INSIGHTS]):
            if not isinstance(item, dict):
                continue
            try:
                insight_type = InsightType(item.get("type"))
            except ValueError:
                continue
            if insight_type not in _GENERATED_BUCKETS:
                continue
            try:
                priority = InsightPriority(item.get("priority"))
            except ValueError:
                priority = InsightPriority.MEDIUM
            try:
                category = InsightCategory(item.get("category"))
            except ValueError:
                category = InsightCategory.GENERAL

            meta = item.get("metadata") if isinstance(item.get("metadata"), dict) else {}
            insights.append(
                Insight(
                    id=f"ai-{millis}-{index}",
                    type=insight_type,
                    title=str(item.get("title") or "Legal insight"),
                    content=str(item.get("content") or ""),
                    priority=priority,
                    category=category,
                    actionable=bool(item.get("actionable", True)),
                    expires_at=now + INSIGHT_TTL,
                    metadata=InsightMetadata(
                        amount=_coerce_float(meta.get("amount")),
                        days_until=_coerce_int(meta.get("daysUntil", meta.get("days_until"))),
                        legislation=meta.get("legislation") or None,
                    ),
                )
            )
        return insights

    async def _call_model(self, prompt: str) -> str:
        """
        POST to the chat completions endpoint and return the message text.

        Returns an empty string on any error (no key, timeout, connection
        failure, non-200 response).
        """
        if not self.api_key:
            logger.warning("_call_model: OPENAI_API_KEY not set; skipping model call")
            return ""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "model": self.model,
                        "messages": [{"role": "user", "content": prompt}],
                        "response_format": {"type": "json_object"},
                        "max_tokens": settings.INSIGHT_MAX_TOKENS,
                        "temperature": 0.7,
                    },
                )
        except httpx.HTTPError as exc:
            logger.error("_call_model: request failed: %s", exc)
            return ""

        if resp.status_code != 200:
            logger.error("_call_model: HTTP %d: %s", resp.status_code, resp.text[:200])
            return ""
        try:
            return resp.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            logger.error("_call_model: unexpected response shape: %s", exc)
            return ""


def get_insights_service() -> LegalInsightsService:
    """FastAPI dependency; overridden in tests."""
    return LegalInsightsService()
