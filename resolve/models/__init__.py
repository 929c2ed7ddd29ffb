"""Database and schema models for Resolve."""
from resolve.models.database_models import (
    User,
    Case,
    Contract,
    Document,
    TimelineEvent,
    Role,
    PlanType,
    SubscriptionStatus,
    CaseStatus,
    ContractStatus,
    StressLevel,
    UrgencyFeeling,
)
from resolve.models.schemas import (
    CaseResponse,
    ContractResponse,
    DocumentResponse,
    Insight,
    InsightReport,
    DashboardInsights,
    UserProfileResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "User",
    "Case",
    "Contract",
    "Document",
    "TimelineEvent",
    "Role",
    "PlanType",
    "SubscriptionStatus",
    "CaseStatus",
    "ContractStatus",
    "StressLevel",
    "UrgencyFeeling",
    # Pydantic schemas
    "CaseResponse",
    "ContractResponse",
    "DocumentResponse",
    "Insight",
    "InsightReport",
    "DashboardInsights",
    "UserProfileResponse",
    "HealthCheckResponse",
]
