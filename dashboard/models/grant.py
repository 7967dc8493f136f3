"""Grant model recording a principal's role, globally or per tenant."""

from sqlalchemy import Integer, ForeignKey, Enum, Index, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import TYPE_CHECKING

from dashboard.models.base import Base, TimestampMixin
from dashboard.models.role import GlobalRole

if TYPE_CHECKING:
    from dashboard.models.principal import Principal
    from dashboard.models.tenant import Tenant


class Grant(Base, TimestampMixin):
    """
    A (principal, tenant-or-none, role) triple.

    tenant_id = NULL marks the principal's global grant, which decides its
    GlobalRole. Any other row scopes a role to one tenant.

    Example grants:
    - Principal "alice" has global role OWNER
    - Principal "bob" has global role OPERATOR
    - Principal "carol" has role MEMBER in tenant "Acme Roofing"

    Constraints:
    - At most one global grant per principal (partial unique index)
    - Unique(principal_id, tenant_id) - one grant per principal per tenant
    - OWNER only as a global grant (enforced at service layer)
    - At least one global OWNER grant at all times (enforced by the policy engine)
    """

    __tablename__ = "grants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    principal_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("principals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tenant_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    role: Mapped[GlobalRole] = mapped_column(
        Enum(GlobalRole, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=GlobalRole.MEMBER,
    )

    # Relationships
    principal: Mapped["Principal"] = relationship("Principal", back_populates="grants")
    tenant: Mapped["Tenant | None"] = relationship("Tenant", back_populates="grants")

    # Constraints
    __table_args__ = (
        UniqueConstraint("principal_id", "tenant_id", name="uq_grant_principal_tenant"),
        Index(
            "uq_grant_principal_global",
            "principal_id",
            unique=True,
            sqlite_where=text("tenant_id IS NULL"),
            postgresql_where=text("tenant_id IS NULL"),
        ),
    )

    @property
    def is_global(self) -> bool:
        return self.tenant_id is None

    def __repr__(self) -> str:
        return f"<Grant(principal_id={self.principal_id}, tenant_id={self.tenant_id}, role={self.role.value})>"
