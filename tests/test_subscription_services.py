import pytest
from fastapi import HTTPException

from app.models.subscription import QuotaFeature, SubscriptionPlan, SubscriptionStatus
from app.schemas.subscription import SubscriptionChange
from app.services.subscription import (
    FREE_TIER_LIMITS,
    current_month,
    quota_guard,
    subscriptions,
)


def _make_pro(db_session, person):
    return subscriptions.change_plan(
        db_session, person.id, SubscriptionChange(plan="pro", billing_customer_ref="c1")
    )


class TestQuotaGuard:
    def test_free_tier_limits(self) -> None:
        assert FREE_TIER_LIMITS[QuotaFeature.ai_questions] == 10
        assert FREE_TIER_LIMITS[QuotaFeature.tasks_created] == 3
        assert FREE_TIER_LIMITS[QuotaFeature.documents_created] == 5
        assert FREE_TIER_LIMITS[QuotaFeature.pdf_exports] == 1
        assert FREE_TIER_LIMITS[QuotaFeature.calendar_events] == 3
        assert FREE_TIER_LIMITS[QuotaFeature.file_uploads] == 5

    def test_pdf_export_limit(self, db_session, person) -> None:
        result = quota_guard.check_limit(db_session, person.id, "pdf_exports")
        assert result.allowed is True
        assert (result.current_usage, result.limit) == (0, 1)

        quota_guard.increment(db_session, person.id, "pdf_exports")
        result = quota_guard.check_limit(db_session, person.id, "pdf_exports")
        assert result.allowed is False
        assert result.is_pro is False
        assert result.reason == "Free tier limit reached (1/1)"

    def test_pro_always_allowed(self, db_session, person) -> None:
        quota_guard.increment(db_session, person.id, QuotaFeature.pdf_exports, 4)
        _make_pro(db_session, person)
        for feature in QuotaFeature:
            result = quota_guard.check_limit(db_session, person.id, feature)
            assert result.allowed is True
            assert result.is_pro is True
            assert result.limit is None

    def test_increment_accumulates(self, db_session, person) -> None:
        quota_guard.increment(db_session, person.id, "ai_questions")
        counter = quota_guard.increment(db_session, person.id, "ai_questions", 2)
        assert counter.ai_questions == 3
        assert counter.month == current_month()
        assert counter.pdf_exports == 0

    def test_increment_rejects_non_positive(self, db_session, person) -> None:
        with pytest.raises(HTTPException) as exc:
            quota_guard.increment(db_session, person.id, "ai_questions", 0)
        assert exc.value.status_code == 400

    def test_unknown_feature(self, db_session, person) -> None:
        with pytest.raises(HTTPException):
            quota_guard.check_limit(db_session, person.id, "video_minutes")

    def test_usage_snapshot_defaults_to_zero(self, db_session, person) -> None:
        snapshot = quota_guard.usage_snapshot(db_session, person.id)
        assert snapshot["month"] == current_month()
        assert all(snapshot[f.value] == 0 for f in QuotaFeature)

    def test_usage_is_per_person(self, db_session, person, other_person) -> None:
        quota_guard.increment(db_session, person.id, "pdf_exports")
        result = quota_guard.check_limit(db_session, other_person.id, "pdf_exports")
        assert result.allowed is True


class TestSubscriptions:
    def test_defaults_to_free(self, db_session, person) -> None:
        assert subscriptions.get_active(db_session, person.id) is None
        current = subscriptions.get_or_default(db_session, person.id)
        assert current["plan"] == "free"
        assert current["id"] is None

    def test_change_plan_cancels_previous(self, db_session, person) -> None:
        first = _make_pro(db_session, person)
        second = subscriptions.change_plan(
            db_session, person.id, SubscriptionChange(plan="free")
        )
        db_session.refresh(first)
        assert first.status is SubscriptionStatus.cancelled
        assert first.ended_at is not None
        assert second.plan is SubscriptionPlan.free
        assert subscriptions.get_active(db_session, person.id).id == second.id
        assert subscriptions.is_pro(db_session, person.id) is False

    def test_change_plan_invalid(self, db_session, person) -> None:
        with pytest.raises(HTTPException) as exc:
            subscriptions.change_plan(
                db_session, person.id, SubscriptionChange(plan="enterprise")
            )
        assert exc.value.status_code == 400
