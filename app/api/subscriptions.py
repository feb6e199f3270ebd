import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_person_id
from app.schemas.subscription import (
    SubscriptionChange,
    SubscriptionRead,
    UsageIncrement,
    UsageLimitRead,
    UsageRead,
)
from app.services import subscription as subscription_service

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.get("/me", response_model=SubscriptionRead)
def get_my_subscription(
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return subscription_service.subscriptions.get_or_default(db, person_id)


@router.post("/plan", response_model=SubscriptionRead)
def change_plan(
    payload: SubscriptionChange,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    subscription_service.subscriptions.change_plan(db, person_id, payload)
    return subscription_service.subscriptions.get_or_default(db, person_id)


@router.get("/usage", response_model=UsageRead)
def get_usage(
    month: str | None = None,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return subscription_service.quota_guard.usage_snapshot(db, person_id, month)


@router.get("/usage/{feature}/check", response_model=UsageLimitRead)
def check_usage_limit(
    feature: str,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return subscription_service.quota_guard.check_limit(db, person_id, feature).as_dict()


@router.post("/usage/{feature}/increment", response_model=UsageRead)
def increment_usage(
    feature: str,
    payload: UsageIncrement,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    subscription_service.quota_guard.increment(db, person_id, feature, payload.amount)
    return subscription_service.quota_guard.usage_snapshot(db, person_id)
