from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionChange(BaseModel):
    plan: str
    billing_customer_ref: str | None = None
    billing_subscription_ref: str | None = None


class SubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = None
    person_id: UUID
    plan: str
    status: str
    started_at: datetime
    ended_at: datetime | None = None


class UsageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    person_id: UUID
    month: str
    ai_questions: int = 0
    tasks_created: int = 0
    documents_created: int = 0
    pdf_exports: int = 0
    calendar_events: int = 0
    file_uploads: int = 0


class UsageIncrement(BaseModel):
    amount: int = Field(default=1, ge=1)


class UsageLimitRead(BaseModel):
    allowed: bool
    current_usage: int | None = None
    limit: int | None = None
    is_pro: bool
    reason: str | None = None
