"""Invitation model: a pending offer of a grant, activated by acceptance."""

from datetime import datetime, UTC
from enum import Enum as PyEnum
from sqlalchemy import String, Integer, Boolean, Enum, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from dashboard.models.base import Base, TimestampMixin
from dashboard.models.role import GlobalRole


class InvitationStatus(str, PyEnum):
    """Lifecycle state, always derived from the stored fields"""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    REVOKED = "revoked"


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything here is stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Invitation(Base, TimestampMixin):
    """
    Offer of a grant to an email address.

    tenant_id is a plain column (no foreign key) so the row survives the
    tenant's deletion as an audit record; pending invitations are revoked
    when their tenant is deleted. Rows are never deleted automatically.

    There is no stored "expired" flag: an invitation is actionable while
    now < expires_at and it has not been used.
    """

    __tablename__ = "invitations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    tenant_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    role: Mapped[GlobalRole] = mapped_column(
        Enum(GlobalRole, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invited_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("principals.id", ondelete="SET NULL"), nullable=True
    )
    accepted_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("principals.id", ondelete="SET NULL"), nullable=True
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return now >= as_utc(self.expires_at)

    def is_actionable(self, now: datetime | None = None) -> bool:
        return not self.used and not self.is_expired(now)

    def status(self, now: datetime | None = None) -> InvitationStatus:
        if self.revoked_at is not None:
            return InvitationStatus.REVOKED
        if self.used:
            return InvitationStatus.ACCEPTED
        if self.is_expired(now):
            return InvitationStatus.EXPIRED
        return InvitationStatus.PENDING

    def __repr__(self) -> str:
        return f"<Invitation(id={self.id}, email='{self.email}', tenant_id={self.tenant_id})>"
