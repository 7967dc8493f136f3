from datetime import date
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from dashboard.models.observation import MetricObservation, ValueKind


class ObservationRepository:
    """Repository for MetricObservation data access"""

    def __init__(self, db: Session):
        self.db = db

    def get_for_source(
        self, tenant_id: int, feed_id: int, sub_source: str
    ) -> list[MetricObservation]:
        """All stored observations of one (tenant, feed, sub-source)"""
        return (
            self.db.query(MetricObservation)
            .filter(
                MetricObservation.tenant_id == tenant_id,
                MetricObservation.feed_id == feed_id,
                MetricObservation.sub_source == sub_source,
            )
            .all()
        )

    def get_for_dates(
        self, tenant_id: int, dates: set[date], value_kind: ValueKind
    ) -> list[MetricObservation]:
        """A tenant's observations of one kind on the given dates, across all sources"""
        if not dates:
            return []
        return (
            self.db.query(MetricObservation)
            .filter(
                MetricObservation.tenant_id == tenant_id,
                MetricObservation.value_kind == value_kind,
                MetricObservation.date.in_(sorted(dates)),
            )
            .order_by(MetricObservation.date, MetricObservation.id)
            .all()
        )

    def add_no_commit(self, observation: MetricObservation) -> MetricObservation:
        """Stage a new observation without committing (for atomic ops)"""
        self.db.add(observation)
        return observation

    def get_with_filters(
        self,
        tenant_id: int,
        category: Optional[str] = None,
        metric_name: Optional[str] = None,
        value_kind: Optional[ValueKind] = None,
        feed_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> tuple[list[MetricObservation], int]:
        """
        Get observations with filters, ensuring multi-tenant isolation.

        Args:
            tenant_id: Tenant ID for isolation
            category: Optional category filter
            metric_name: Optional exact metric name filter
            value_kind: Optional value kind filter
            feed_id: Optional source filter
            start_date: Optional start date filter (inclusive)
            end_date: Optional end date filter (inclusive)
            limit: Maximum number of results
            offset: Pagination offset

        Returns:
            Tuple of (observations list, total count)
        """
        query = self.db.query(MetricObservation).filter(MetricObservation.tenant_id == tenant_id)

        if category is not None:
            query = query.filter(MetricObservation.category == category)

        if metric_name is not None:
            query = query.filter(MetricObservation.metric_name == metric_name)

        if value_kind is not None:
            query = query.filter(MetricObservation.value_kind == value_kind)

        if feed_id is not None:
            query = query.filter(MetricObservation.feed_id == feed_id)

        if start_date is not None:
            query = query.filter(MetricObservation.date >= start_date)

        if end_date is not None:
            query = query.filter(MetricObservation.date <= end_date)

        total = query.count()

        observations = (
            query.order_by(
                MetricObservation.date,
                MetricObservation.category,
                MetricObservation.metric_name,
                MetricObservation.id,
            )
            .limit(limit)
            .offset(offset)
            .all()
        )

        return observations, total

    def sum_actuals(
        self,
        tenant_id: int,
        metric_names: list[str],
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> dict[str, float]:
        """Sum actual values per metric name over a date window"""
        if not metric_names:
            return {}
        query = self.db.query(
            MetricObservation.metric_name, func.sum(MetricObservation.value)
        ).filter(
            MetricObservation.tenant_id == tenant_id,
            MetricObservation.value_kind == ValueKind.ACTUAL,
            MetricObservation.metric_name.in_(metric_names),
        )
        if start_date is not None:
            query = query.filter(MetricObservation.date >= start_date)
        if end_date is not None:
            query = query.filter(MetricObservation.date <= end_date)
        rows = query.group_by(MetricObservation.metric_name).all()
        return {name: float(total) for name, total in rows if total is not None}

    def delete_for_feed(self, feed_id: int) -> int:
        """Delete all observations of a feed without committing"""
        return (
            self.db.query(MetricObservation)
            .filter(MetricObservation.feed_id == feed_id)
            .delete(synchronize_session=False)
        )

    def delete_for_tenant(self, tenant_id: int) -> int:
        """Delete all observations of a tenant without committing"""
        return (
            self.db.query(MetricObservation)
            .filter(MetricObservation.tenant_id == tenant_id)
            .delete(synchronize_session=False)
        )
