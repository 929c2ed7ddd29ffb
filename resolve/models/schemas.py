"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Dict, Optional, List
from datetime import datetime
from enum import Enum

from resolve.models.database_models import (
    ApplicationStatus,
    CaseStatus,
    ContractStatus,
    Role,
    StressLevel,
    UrgencyFeeling,
)


# ---------------------------------------------------------------------------
# Users / subscription
# ---------------------------------------------------------------------------

class UserProfileResponse(BaseModel):
    """Schema for the authenticated user's profile."""

    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: str
    subscription_status: str
    plan_type: str
    strategy_packs_remaining: int
    has_initial_strategy_pack: bool
    subscription_expires_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserProfileUpdate(BaseModel):
    """Editable profile fields; role and billing state are not user-editable."""

    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    profile_image_url: Optional[str] = Field(None, max_length=512)


class SubscriptionStatusResponse(BaseModel):
    can_create_cases: bool
    plan_type: str
    status: str
    message: Optional[str] = None
    strategy_packs_remaining: Optional[int] = None


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------

class TimelineEventResponse(BaseModel):
    id: int
    case_id: Optional[int] = None
    contract_id: Optional[int] = None
    event_type: str
    title: str
    description: Optional[str] = None
    event_date: datetime
    is_completed: bool

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------

class CaseCreateRequest(BaseModel):
    """Schema for creating a new case."""

    title: str = Field(..., min_length=1, max_length=200)
    issue_type: str = Field(..., min_length=1, max_length=64)
    description: str = Field(..., min_length=10)
    amount: Optional[float] = Field(None, ge=0)
    deadline_date: Optional[datetime] = None
    priority: str = "medium"
    next_action: Optional[str] = None


class CaseUpdateRequest(BaseModel):
    """Partial update; only provided fields change."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    issue_type: Optional[str] = Field(None, min_length=1, max_length=64)
    description: Optional[str] = None
    amount: Optional[float] = Field(None, ge=0)
    status: Optional[CaseStatus] = None
    priority: Optional[str] = None
    deadline_date: Optional[datetime] = None
    next_action: Optional[str] = None
    progress: Optional[int] = Field(None, ge=0, le=100)


class MoodUpdateRequest(BaseModel):
    mood_score: Optional[int] = Field(None, ge=1, le=10)
    stress_level: Optional[StressLevel] = None
    urgency_feeling: Optional[UrgencyFeeling] = None
    confidence_level: Optional[int] = Field(None, ge=1, le=10)
    client_satisfaction: Optional[int] = Field(None, ge=1, le=10)
    mood_notes: Optional[str] = None


class MoodResponse(BaseModel):
    """Mood metadata for a case plus the derived summary."""

    mood_score: int
    stress_level: str
    urgency_feeling: str
    confidence_level: int
    client_satisfaction: int
    mood_notes: Optional[str] = None
    last_mood_update: Optional[datetime] = None
    overall_score: int
    mood_summary: str


class CaseResponse(BaseModel):
    id: int
    user_id: str
    title: str
    case_number: str
    status: str
    issue_type: str
    amount: Optional[float] = None
    description: Optional[str] = None
    priority: str
    deadline_date: Optional[datetime] = None
    next_action: Optional[str] = None
    progress: int
    mood_score: int
    stress_level: str
    urgency_feeling: str
    confidence_level: int
    client_satisfaction: int
    mood_notes: Optional[str] = None
    last_mood_update: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

class ContractCreateRequest(BaseModel):
    """Schema for creating a new contract."""

    title: str = Field(..., min_length=1, max_length=200)
    client_name: str = Field(..., min_length=1, max_length=100)
    client_email: Optional[str] = Field(None, max_length=255)
    project_description: str = Field(..., min_length=10)
    value: Optional[float] = Field(None, ge=0)
    payment_terms: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ContractUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    client_name: Optional[str] = Field(None, min_length=1, max_length=100)
    client_email: Optional[str] = Field(None, max_length=255)
    project_description: Optional[str] = Field(None, min_length=10)
    value: Optional[float] = Field(None, ge=0)
    payment_terms: Optional[str] = None
    status: Optional[ContractStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ContractResponse(BaseModel):
    id: int
    user_id: str
    title: str
    contract_number: str
    status: str
    client_name: str
    client_email: Optional[str] = None
    project_description: str
    value: Optional[float] = None
    payment_terms: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

class DocumentResponse(BaseModel):
    """Schema for document metadata."""

    id: int
    user_id: str
    case_id: Optional[int] = None
    contract_id: Optional[int] = None
    filename: str
    original_name: str
    storage_path: str
    storage_url: Optional[str] = None
    file_type: str
    mime_type: str
    file_size: int
    category: str
    description: Optional[str] = None
    created_at: datetime
    previewable: bool = False
    kind: str = "unknown"  # extension-derived: pdf, word, image, text, email, spreadsheet

    model_config = ConfigDict(from_attributes=True)


class DocumentDeleteResponse(BaseModel):
    id: int
    message: str = "Document deleted successfully"
    storage_deleted: bool = True


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------

class InsightType(str, Enum):
    DEADLINE_ALERT = "deadline_alert"
    CASE_ANALYSIS = "case_analysis"
    INDUSTRY_TREND = "industry_trend"
    LEGAL_TIP = "legal_tip"
    ACTION_REQUIRED = "action_required"


class InsightPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class InsightCategory(str, Enum):
    PAYMENT_DISPUTES = "payment_disputes"
    CONTRACT_ISSUES = "contract_issues"
    REGULATORY_COMPLIANCE = "regulatory_compliance"
    GENERAL = "general"


class InsightSource(str, Enum):
    GENERATED = "generated"
    FALLBACK = "fallback"


class InsightMetadata(BaseModel):
    amount: Optional[float] = None
    days_until: Optional[int] = None
    legislation: Optional[str] = None
    severity: Optional[str] = None


class Insight(BaseModel):
    id: str
    type: InsightType
    title: str
    content: str
    priority: InsightPriority
    category: InsightCategory
    actionable: bool
    expires_at: Optional[datetime] = None
    related_case_id: Optional[int] = None
    metadata: Optional[InsightMetadata] = None


class DashboardInsights(BaseModel):
    urgent_alerts: List[Insight] = []
    case_analysis: List[Insight] = []
    industry_trends: List[Insight] = []
    legal_tips: List[Insight] = []
    action_items: List[Insight] = []


class InsightReport(BaseModel):
    """Dashboard insights tagged with whether the model produced them."""

    source: InsightSource
    generated_at: datetime
    insights: DashboardInsights


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

class AdminLoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class AdminSessionResponse(BaseModel):
    is_admin: bool = True
    user_id: str
    email: Optional[str] = None
    expires_at: datetime


class RoleUpdateRequest(BaseModel):
    role: Role


class AdminStatsResponse(BaseModel):
    total_users: int
    new_users_today: int
    total_cases: int
    active_cases: int
    total_documents: int
    active_subscriptions: int
    pending_applications: int = 0


class SendDocumentationRequest(BaseModel):
    recipient_email: str = Field(..., min_length=3, max_length=255)
    recipient_name: str = Field(..., min_length=1, max_length=255)
    document_title: str = Field(..., min_length=1, max_length=255)
    document_url: Optional[str] = None
    custom_message: Optional[str] = None
    case_id: Optional[int] = None


class SendDocumentationResponse(BaseModel):
    success: bool
    message: str


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------

class ApplicationCreateRequest(BaseModel):
    """Public intake form; no account is needed to apply."""

    full_name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=6, max_length=50)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    trade: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., pattern="^(NSW|VIC|QLD|WA|SA|TAS|ACT|NT)$")
    issue_type: str = Field(..., min_length=1, max_length=64)
    amount: Optional[float] = Field(None, ge=0)
    start_date: Optional[str] = Field(None, max_length=64)
    description: str = Field(..., min_length=10)


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus
    reason: Optional[str] = Field(None, max_length=2000)


class ApplicationResponse(BaseModel):
    id: int
    user_id: Optional[str] = None
    full_name: str
    phone: str
    email: str
    trade: str
    state: str
    issue_type: str
    amount: Optional[float] = None
    start_date: Optional[str] = None
    description: str
    status: str
    status_reason: Optional[str] = None
    workflow_stage: str
    payment_status: str
    payment_amount: float
    intake_completed: bool
    pdf_generated: bool
    dashboard_access_granted: bool
    monthly_subscription_offered: bool
    ai_analysis: Optional[dict] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    type: str
    priority: str
    category: str
    status: str
    related_id: Optional[int] = None
    related_type: Optional[str] = None
    action_url: Optional[str] = None
    action_label: Optional[str] = None
    details: Optional[dict] = None
    expires_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationSummary(BaseModel):
    total: int = 0
    unread: int = 0
    critical: int = 0
    high: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)


class NotificationRefreshResponse(BaseModel):
    created: int
    deadline: int
    smart: int


class MarkAllReadResponse(BaseModel):
    updated: int


class StrategyPackResponse(BaseModel):
    message: str = "Strategy pack generated successfully"
    case_id: int
    event_id: int


# ---------------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------------

class PaymentIntentRequest(BaseModel):
    purchase_type: str = Field("strategy_pack", pattern="^(strategy_pack|monthly_subscription)$")


class PaymentIntentResponse(BaseModel):
    client_secret: str
    payment_intent_id: str


class SubscriptionCreateResponse(BaseModel):
    subscription_id: str
    client_secret: Optional[str] = None


class WebhookAck(BaseModel):
    received: bool = True
    handled: bool = False
    event_type: Optional[str] = None


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class HealthCheckResponse(BaseModel):
    """Schema for health check endpoint."""

    status: str
    database: str
    llm: str
    email: str
    timestamp: datetime
    version: str = "0.1.0"
