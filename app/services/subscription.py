import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationFailedError
from app.models.person import Person
from app.models.subscription import (
    QuotaFeature,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    UsageCounter,
)
from app.observability import QUOTA_DENIALS
from app.schemas.subscription import SubscriptionChange
from app.services.common import coerce_uuid, utcnow

logger = logging.getLogger(__name__)

# Monthly ceilings for accounts without an active pro subscription
FREE_TIER_LIMITS = {
    QuotaFeature.ai_questions: 10,
    QuotaFeature.tasks_created: 3,
    QuotaFeature.documents_created: 5,
    QuotaFeature.pdf_exports: 1,
    QuotaFeature.calendar_events: 3,
    QuotaFeature.file_uploads: 5,
}


@dataclass(frozen=True)
class UsageLimit:
    allowed: bool
    is_pro: bool
    current_usage: int | None = None
    limit: int | None = None
    reason: str | None = None

    def as_dict(self) -> dict:
        return asdict(self)


def parse_feature(feature: str | QuotaFeature) -> QuotaFeature:
    if isinstance(feature, QuotaFeature):
        return feature
    try:
        return QuotaFeature(feature)
    except ValueError:
        raise ValidationFailedError(
            f"Invalid feature: {feature}. Allowed: {[f.value for f in QuotaFeature]}"
        )


def current_month(now: datetime | None = None) -> str:
    return (now or utcnow()).strftime("%Y-%m")


class Subscriptions:
    @staticmethod
    def get_active(db: Session, person_id: str | uuid.UUID) -> Subscription | None:
        return db.scalar(
            select(Subscription)
            .where(
                Subscription.person_id == coerce_uuid(person_id),
                Subscription.status == SubscriptionStatus.active,
            )
            .order_by(Subscription.started_at.desc())
        )

    @staticmethod
    def get_or_default(db: Session, person_id: str | uuid.UUID) -> dict:
        subscription = Subscriptions.get_active(db, person_id)
        if subscription is not None:
            return {
                "id": subscription.id,
                "person_id": subscription.person_id,
                "plan": subscription.plan.value,
                "status": subscription.status.value,
                "started_at": subscription.started_at,
                "ended_at": subscription.ended_at,
            }
        return {
            "id": None,
            "person_id": coerce_uuid(person_id),
            "plan": SubscriptionPlan.free.value,
            "status": SubscriptionStatus.active.value,
            "started_at": utcnow(),
            "ended_at": None,
        }

    @staticmethod
    def is_pro(db: Session, person_id: str | uuid.UUID) -> bool:
        subscription = Subscriptions.get_active(db, person_id)
        return subscription is not None and subscription.plan == SubscriptionPlan.pro

    @staticmethod
    def change_plan(
        db: Session, person_id: str | uuid.UUID, payload: SubscriptionChange
    ) -> Subscription:
        """Apply a plan transition signalled by billing.

        Every currently active subscription is cancelled and a new active
        one is started for the requested plan.
        """
        try:
            plan = SubscriptionPlan(payload.plan)
        except ValueError:
            raise ValidationFailedError(f"Invalid plan: {payload.plan}")
        person_uuid = coerce_uuid(person_id)
        if not db.get(Person, person_uuid):
            raise NotFoundError("Person not found")

        now = utcnow()
        existing = db.scalars(
            select(Subscription).where(
                Subscription.person_id == person_uuid,
                Subscription.status == SubscriptionStatus.active,
            )
        ).all()
        for subscription in existing:
            subscription.status = SubscriptionStatus.cancelled
            subscription.ended_at = now

        subscription = Subscription(
            person_id=person_uuid,
            plan=plan,
            status=SubscriptionStatus.active,
            started_at=now,
            billing_customer_ref=payload.billing_customer_ref,
            billing_subscription_ref=payload.billing_subscription_ref,
        )
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        logger.info(
            "Person %s moved to %s plan (%d previous cancelled)",
            person_uuid,
            plan.value,
            len(existing),
        )
        return subscription


class QuotaGuard:
    """Monthly per-feature ceilings for free accounts.

    Checks are advisory and never raise for a denial. Check and increment
    are separate steps; callers check, act, then increment, and two
    concurrent callers may both pass a check at ``limit - 1``.
    """

    @staticmethod
    def get_usage(
        db: Session, person_id: str | uuid.UUID, month: str | None = None
    ) -> UsageCounter | None:
        return db.scalar(
            select(UsageCounter).where(
                UsageCounter.person_id == coerce_uuid(person_id),
                UsageCounter.month == (month or current_month()),
            )
        )

    @staticmethod
    def usage_snapshot(
        db: Session, person_id: str | uuid.UUID, month: str | None = None
    ) -> dict:
        month = month or current_month()
        counter = QuotaGuard.get_usage(db, person_id, month)
        snapshot = {"person_id": coerce_uuid(person_id), "month": month}
        for feature in QuotaFeature:
            snapshot[feature.value] = getattr(counter, feature.value) if counter else 0
        return snapshot

    @staticmethod
    def check_limit(
        db: Session, person_id: str | uuid.UUID, feature: str | QuotaFeature
    ) -> UsageLimit:
        parsed = parse_feature(feature)
        if Subscriptions.is_pro(db, person_id):
            return UsageLimit(allowed=True, is_pro=True)

        counter = QuotaGuard.get_usage(db, person_id)
        current_usage = getattr(counter, parsed.value) if counter else 0
        limit = FREE_TIER_LIMITS[parsed]
        if current_usage >= limit:
            QUOTA_DENIALS.labels(parsed.value).inc()
            return UsageLimit(
                allowed=False,
                is_pro=False,
                current_usage=current_usage,
                limit=limit,
                reason=f"Free tier limit reached ({current_usage}/{limit})",
            )
        return UsageLimit(
            allowed=True, is_pro=False, current_usage=current_usage, limit=limit
        )

    @staticmethod
    def increment(
        db: Session,
        person_id: str | uuid.UUID,
        feature: str | QuotaFeature,
        amount: int = 1,
    ) -> UsageCounter:
        parsed = parse_feature(feature)
        if amount < 1:
            raise ValidationFailedError("Increment amount must be at least 1")
        person_uuid = coerce_uuid(person_id)
        month = current_month()
        column = getattr(UsageCounter, parsed.value)

        def _bump() -> int:
            result = db.execute(
                update(UsageCounter)
                .where(
                    UsageCounter.person_id == person_uuid,
                    UsageCounter.month == month,
                )
                .values({parsed.value: column + amount, "last_updated": utcnow()})
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

        if not _bump():
            counter = UsageCounter(person_id=person_uuid, month=month)
            for each in QuotaFeature:
                setattr(counter, each.value, amount if each is parsed else 0)
            db.add(counter)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                _bump()
                db.commit()
        else:
            db.commit()

        counter = QuotaGuard.get_usage(db, person_uuid, month)
        db.refresh(counter)
        logger.info(
            "Usage %s for person %s in %s is now %d",
            parsed.value,
            person_uuid,
            month,
            getattr(counter, parsed.value),
        )
        return counter


subscriptions = Subscriptions()
quota_guard = QuotaGuard()
