import datetime as dt
from enum import Enum as PyEnum
from sqlalchemy import String, Integer, Float, ForeignKey, Date, Enum, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from dashboard.models.base import Base, TimestampMixin
from dashboard.models.feed import FeedKind


class ValueKind(str, PyEnum):
    """Whether an observation is a raw actual, a goal, or derived"""

    ACTUAL = "actual"
    TARGET = "target"
    CALCULATED = "calculated"


class MetricObservation(Base, TimestampMixin):
    """
    One metric value for a tenant, date and category, from one source.

    The de-duplication key (tenant_id, feed_id, sub_source, date, category,
    metric_name, value_kind) identifies a fact across repeated syncs.
    value is NULL only for calculated metrics that could not be computed.
    """

    __tablename__ = "metric_observations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    feed_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("feeds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    source_kind: Mapped[FeedKind] = mapped_column(
        Enum(FeedKind, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    sub_source: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    metric_name: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[float | None] = mapped_column(Float, nullable=True)
    value_kind: Mapped[ValueKind] = mapped_column(
        Enum(ValueKind, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=ValueKind.ACTUAL,
    )

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "feed_id",
            "sub_source",
            "date",
            "category",
            "metric_name",
            "value_kind",
            name="uq_observation_dedup_key",
        ),
        Index("ix_observations_tenant_date", "tenant_id", "date"),
        Index("ix_observations_tenant_category", "tenant_id", "category"),
    )

    @property
    def dedup_key(self) -> tuple:
        return (
            self.tenant_id,
            self.feed_id,
            self.sub_source,
            self.date,
            self.category,
            self.metric_name,
            self.value_kind,
        )
