from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import String, Integer, ForeignKey, Enum, JSON, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import TYPE_CHECKING
from dashboard.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from dashboard.models.tenant import Tenant


class FeedKind(str, PyEnum):
    """Feed source kind enumeration"""

    SPREADSHEET = "spreadsheet"
    FILE_IMPORT = "file_import"


class Feed(Base, TimestampMixin):
    """
    External data source attached to a tenant.

    locator is the spreadsheet id or the imported filename. sub_sources lists
    the selected sheet tabs or import batches; an empty list accepts any.
    """

    __tablename__ = "feeds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind: Mapped[FeedKind] = mapped_column(
        Enum(FeedKind, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    locator: Mapped[str] = mapped_column(String(512), nullable=False)
    sub_sources: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="feeds")

    def accepts(self, sub_source: str) -> bool:
        return not self.sub_sources or sub_source in self.sub_sources
