import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base


class SubscriptionPlan(enum.Enum):
    free = "free"
    pro = "pro"


class SubscriptionStatus(enum.Enum):
    active = "active"
    cancelled = "cancelled"
    expired = "expired"


class QuotaFeature(enum.Enum):
    ai_questions = "ai_questions"
    tasks_created = "tasks_created"
    documents_created = "documents_created"
    pdf_exports = "pdf_exports"
    calendar_events = "calendar_events"
    file_uploads = "file_uploads"


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("ix_subscriptions_person_id", "person_id"),
        Index("ix_subscriptions_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    person_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    plan: Mapped[SubscriptionPlan] = mapped_column(
        Enum(SubscriptionPlan), nullable=False
    )
    status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.active
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    billing_customer_ref: Mapped[str | None] = mapped_column(String(255))
    billing_subscription_ref: Mapped[str | None] = mapped_column(String(255))


class UsageCounter(Base):
    """Per-person monthly usage; one row per (person, "YYYY-MM")."""

    __tablename__ = "usage_counters"
    __table_args__ = (
        UniqueConstraint("person_id", "month", name="uq_usage_counters_person_month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    person_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    ai_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tasks_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    documents_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pdf_exports: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    calendar_events: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    file_uploads: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
