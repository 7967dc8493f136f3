"""Tenant model for multi-tenant isolation."""

from enum import Enum as PyEnum
from sqlalchemy import String, Integer, Enum, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import TYPE_CHECKING

from dashboard.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from dashboard.models.grant import Grant
    from dashboard.models.feed import Feed


class TenantKind(str, PyEnum):
    """Tenant kind enumeration"""

    STANDARD = "standard"
    INTERNAL_OPERATOR_DASHBOARD = "internal_operator_dashboard"


class Tenant(Base, TimestampMixin):
    """
    A client organization with its own data and dashboard.

    Examples:
    - "Acme Roofing" (slug "acme-roofing") - a standard client
    - "Agency Overview" - the operator's own internal dashboard, visible
      only to global owners and operators

    Metric observations, feeds and tenant-scoped grants belong to a tenant
    and are removed with it.
    """

    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    kind: Mapped[TenantKind] = mapped_column(
        Enum(TenantKind, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=TenantKind.STANDARD,
    )
    # Category allow-list; empty means every category is accepted
    categories: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # Monthly targets keyed by metric name
    goals: Mapped[dict[str, float]] = mapped_column(JSON, nullable=False, default=dict)

    # Relationships
    grants: Mapped[list["Grant"]] = relationship("Grant", back_populates="tenant")
    feeds: Mapped[list["Feed"]] = relationship(
        "Feed",
        back_populates="tenant",
        order_by="Feed.id",
    )

    @property
    def is_internal(self) -> bool:
        return self.kind == TenantKind.INTERNAL_OPERATOR_DASHBOARD

    def allows_category(self, category: str) -> bool:
        return not self.categories or category in self.categories

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug='{self.slug}')>"
