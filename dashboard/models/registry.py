"""Import every model so Base.metadata is complete (used by alembic and tests)."""

from dashboard.models.base import Base
from dashboard.models.principal import Principal
from dashboard.models.tenant import Tenant, TenantKind
from dashboard.models.grant import Grant
from dashboard.models.feed import Feed, FeedKind
from dashboard.models.observation import MetricObservation, ValueKind
from dashboard.models.invitation import Invitation, InvitationStatus

__all__ = [
    "Base",
    "Principal",
    "Tenant",
    "TenantKind",
    "Grant",
    "Feed",
    "FeedKind",
    "MetricObservation",
    "ValueKind",
    "Invitation",
    "InvitationStatus",
]
