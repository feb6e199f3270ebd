from app.models.audit import AuditAction, AuditEvent  # noqa: F401
from app.models.ecm import (  # noqa: F401
    Case,
    Document,
    DocumentPermission,
    DocumentRole,
    DocumentVersion,
)
from app.models.person import Person  # noqa: F401
from app.models.presence import PresenceRecord  # noqa: F401
from app.models.subscription import (  # noqa: F401
    QuotaFeature,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    UsageCounter,
)
