"""
SQLAlchemy ORM models for the Resolve database.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Boolean,
    Numeric,
    JSON,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from resolve.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class Role(str, enum.Enum):
    """Closed set of account roles."""

    USER = "user"
    ADMIN = "admin"
    MODERATOR = "moderator"

    @classmethod
    def parse(cls, value) -> "Role":
        """Map a stored role string onto the enum; anything unknown is a plain user."""
        try:
            return cls(value)
        except ValueError:
            return cls.USER


class SubscriptionStatus(str, enum.Enum):
    NONE = "none"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


class PlanType(str, enum.Enum):
    NONE = "none"
    STRATEGY_PACK = "strategy_pack"
    MONTHLY_SUBSCRIPTION = "monthly_subscription"


class CaseStatus(str, enum.Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    ON_HOLD = "on_hold"


class ContractStatus(str, enum.Enum):
    DRAFT = "draft"
    FINAL = "final"
    SIGNED = "signed"


class StressLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class UrgencyFeeling(str, enum.Enum):
    CALM = "calm"
    MODERATE = "moderate"
    URGENT = "urgent"
    PANIC = "panic"


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkflowStage(str, enum.Enum):
    SUBMITTED = "submitted"
    AI_REVIEWED = "ai_reviewed"
    PAYMENT_PENDING = "payment_pending"
    INTAKE_PENDING = "intake_pending"
    PDF_GENERATION = "pdf_generation"
    DASHBOARD_ACCESS = "dashboard_access"


class NotificationStatus(str, enum.Enum):
    UNREAD = "unread"
    READ = "read"
    ARCHIVED = "archived"


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Models
class User(Base):
    """Local mirror of an identity-provider account."""

    __tablename__ = "users"

    id = Column(String(255), primary_key=True)  # identity provider UUID
    email = Column(String(255), nullable=True, unique=True, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    profile_image_url = Column(String(512), nullable=True)
    role = Column(String(20), default=Role.USER.value, nullable=False)

    # Billing
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True)
    subscription_status = Column(String(20), default=SubscriptionStatus.NONE.value, nullable=False)
    plan_type = Column(String(30), default=PlanType.NONE.value, nullable=False)
    strategy_packs_remaining = Column(Integer, default=0, nullable=False)
    has_initial_strategy_pack = Column(Boolean, default=False, nullable=False)
    subscription_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    # Relationships
    cases = relationship("Case", back_populates="user", cascade="all, delete-orphan")
    contracts = relationship("Contract", back_populates="user", cascade="all, delete-orphan")
    documents = relationship("Document", back_populates="user", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or (self.email or "")


class Case(Base):
    """Payment dispute or contract issue raised by a user."""

    __tablename__ = "cases"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    case_number = Column(String(64), unique=True, nullable=False)
    status = Column(String(20), default=CaseStatus.ACTIVE.value, nullable=False, index=True)
    issue_type = Column(String(64), nullable=False)
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=True)
    description = Column(Text, nullable=True)
    priority = Column(String(20), default="medium", nullable=False)
    deadline_date = Column(DateTime(timezone=True), nullable=True)
    next_action = Column(String(255), nullable=True)
    progress = Column(Integer, default=0, nullable=False)  # 0-100

    # Mood metadata
    mood_score = Column(Integer, default=5, nullable=False)  # 1-10
    stress_level = Column(String(20), default=StressLevel.MEDIUM.value, nullable=False)
    urgency_feeling = Column(String(20), default=UrgencyFeeling.MODERATE.value, nullable=False)
    confidence_level = Column(Integer, default=5, nullable=False)  # 1-10
    client_satisfaction = Column(Integer, default=5, nullable=False)  # 1-10
    mood_notes = Column(Text, nullable=True)
    last_mood_update = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="cases")
    documents = relationship("Document", back_populates="case")
    timeline_events = relationship("TimelineEvent", back_populates="case", cascade="all, delete-orphan")


class Contract(Base):
    """Contract drafted by a user with a client (the counterpart)."""

    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    contract_number = Column(String(64), unique=True, nullable=False)
    status = Column(String(20), default=ContractStatus.DRAFT.value, nullable=False)
    client_name = Column(String(100), nullable=False)
    client_email = Column(String(255), nullable=True)
    project_description = Column(Text, nullable=False)
    value = Column(Numeric(12, 2, asdecimal=False), nullable=True)
    payment_terms = Column(Text, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="contracts")
    documents = relationship("Document", back_populates="contract")
    timeline_events = relationship("TimelineEvent", back_populates="contract", cascade="all, delete-orphan")


class Document(Base):
    """Uploaded file; the bytes live in object storage under ``storage_path``."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="SET NULL"), nullable=True, index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id", ondelete="SET NULL"), nullable=True, index=True)
    filename = Column(String(255), nullable=False)  # stored name
    original_name = Column(String(255), nullable=False)  # display name
    storage_path = Column(String(1024), nullable=False)
    storage_url = Column(String(2048), nullable=True)
    file_type = Column(String(20), nullable=False)  # photo, document
    mime_type = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    category = Column(String(50), nullable=False)  # evidence, contract, correspondence, photos
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    # Relationships
    user = relationship("User", back_populates="documents")
    case = relationship("Case", back_populates="documents")
    contract = relationship("Contract", back_populates="documents")


class TimelineEvent(Base):
    """Activity entry shown on a case or contract timeline."""

    __tablename__ = "timeline_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="CASCADE"), nullable=True, index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=True, index=True)
    event_type = Column(String(50), nullable=False)  # case_created, document_uploaded, mood_updated, ...
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    event_date = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    # Relationships
    case = relationship("Case", back_populates="timeline_events")
    contract = relationship("Contract", back_populates="timeline_events")


class Application(Base):
    """Intake form submitted before (or without) signing up."""

    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False)
    trade = Column(String(100), nullable=False)
    state = Column(String(10), nullable=False)  # Australian state or territory
    issue_type = Column(String(64), nullable=False)
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=True)
    start_date = Column(String(64), nullable=True)  # free text from the form
    description = Column(Text, nullable=False)

    status = Column(String(20), default=ApplicationStatus.PENDING.value, nullable=False, index=True)
    status_reason = Column(Text, nullable=True)
    workflow_stage = Column(String(30), default=WorkflowStage.SUBMITTED.value, nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)
    payment_amount = Column(Numeric(12, 2, asdecimal=False), default=299.00, nullable=False)
    intake_completed = Column(Boolean, default=False, nullable=False)
    pdf_generated = Column(Boolean, default=False, nullable=False)
    dashboard_access_granted = Column(Boolean, default=False, nullable=False)
    monthly_subscription_offered = Column(Boolean, default=False, nullable=False)
    ai_analysis = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


class Notification(Base):
    """In-app notification: deadlines, suggested actions and tips."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(30), nullable=False)  # deadline, action_required, legal_tip, ...
    priority = Column(String(20), default=NotificationPriority.MEDIUM.value, nullable=False)
    category = Column(String(50), default="general", nullable=False)
    status = Column(String(20), default=NotificationStatus.UNREAD.value, nullable=False, index=True)
    related_id = Column(Integer, nullable=True)
    related_type = Column(String(20), nullable=True)  # case, contract
    action_url = Column(String(512), nullable=True)
    action_label = Column(String(100), nullable=True)
    details = Column(JSON, nullable=True)  # e.g. days_until_deadline
    expires_at = Column(DateTime(timezone=True), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
