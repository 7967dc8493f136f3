from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import TYPE_CHECKING
from dashboard.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from dashboard.models.grant import Grant


class Principal(Base, TimestampMixin):
    """
    Authenticated actor known to the external auth provider.

    Only stores the provider's subject id and email - no credentials.
    Auto-created on first API request with valid JWT.
    """

    __tablename__ = "principals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auth_user_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    # auth_user_id is the 'sub' claim from JWT
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)

    # Relationships
    grants: Mapped[list["Grant"]] = relationship(
        "Grant",
        back_populates="principal",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Principal(id={self.id}, auth_user_id='{self.auth_user_id}')>"
