"""Ingestion reconciler: merges imported metric rows into the canonical store.

A batch is authorized as a whole, then merged row by row under the tenant's
write lock. Each row is identified by its de-duplication key
(tenant, feed, sub-source, date, category, metric name, value kind):

- no stored row with that key: insert
- stored row with the same value: skip ("unchanged")
- stored row with a different value: overwrite (last write wins)

Rows that fail validation are skipped with a reason and never abort the
batch. Calculated metrics are derived after every row has been merged, from
all of the tenant's actuals on each date the batch touched.
Re-running a batch is idempotent.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, UTC
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy.orm import Session

from dashboard.core.exceptions import MalformedObservation, NotFoundException, ValidationException
from dashboard.core.formulas import (
    DERIVED_METRICS,
    DerivedMetric,
    applicable_formulas,
    normalize_metric_name,
)
from dashboard.core.locks import TenantLockRegistry, tenant_locks
from dashboard.models.feed import Feed
from dashboard.models.observation import MetricObservation, ValueKind
from dashboard.models.role import Action
from dashboard.models.tenant import Tenant
from dashboard.repositories.feed_repository import FeedRepository
from dashboard.repositories.observation_repository import ObservationRepository
from dashboard.repositories.tenant_repository import TenantRepository
from dashboard.schemas.observation_schemas import RawObservation
from dashboard.services.access_policy import AccessPolicyEngine

logger = logging.getLogger(__name__)

# (date, category, metric_name, value_kind); tenant, feed and sub-source are fixed per merge
_RowKey = tuple[date, str, str, ValueKind]

# Calculated rows span every category of a date
DERIVED_CATEGORY = ""


@dataclass(frozen=True)
class SourceDescriptor:
    """Where a batch came from: a feed and one of its tabs or import batches"""

    source_id: int
    sub_source: str = ""


@dataclass(frozen=True)
class SkippedRow:
    index: int
    reason: str


@dataclass
class MergeResult:
    inserted: int = 0
    updated: int = 0
    skipped_rows: list[SkippedRow] = field(default_factory=list)
    derived_inserted: int = 0
    derived_updated: int = 0

    @property
    def skipped(self) -> int:
        return len(self.skipped_rows)


@dataclass(frozen=True)
class GoalProgress:
    metric_name: str
    target: float
    actual: float

    @property
    def percent(self) -> float | None:
        if not self.target:
            return None
        return self.actual / self.target * 100


class _Outcome(Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class IngestionReconciler:
    """Service for merging and reading a tenant's metric observations"""

    def __init__(
        self,
        db: Session,
        locks: TenantLockRegistry = tenant_locks,
        formulas: tuple[DerivedMetric, ...] = DERIVED_METRICS,
    ):
        self.db = db
        self.locks = locks
        self.formulas = formulas
        self.policy = AccessPolicyEngine(db)
        self.tenant_repo = TenantRepository(db)
        self.feed_repo = FeedRepository(db)
        self.observation_repo = ObservationRepository(db)

    def merge_observations(
        self,
        principal_id: int,
        tenant_id: int,
        source: SourceDescriptor,
        observations: Sequence[Mapping[str, Any] | RawObservation],
    ) -> MergeResult:
        """
        Merge a batch of raw rows from one source into the tenant's store.

        Args:
            principal_id: Principal performing the sync
            tenant_id: Target tenant
            source: Feed and sub-source the rows came from
            observations: Raw rows (mappings or RawObservation)

        Returns:
            MergeResult with per-row skip reasons

        Raises:
            ForbiddenException: If the principal cannot write to the tenant
                (nothing is merged)
            NotFoundException: If tenant or feed not found
            ValidationException: If the sub-source is not selected on the feed
        """
        self.policy.require(principal_id, tenant_id, Action.WRITE)

        with self.locks.hold(tenant_id):
            tenant = self.tenant_repo.get_by_id(tenant_id, lock=True)
            if not tenant:
                raise NotFoundException("Tenant not found")
            feed = self.feed_repo.get_by_id_and_tenant(source.source_id, tenant_id)
            if not feed:
                raise NotFoundException(f"Feed {source.source_id} not found for this tenant")
            if not feed.accepts(source.sub_source):
                raise ValidationException(
                    f"Sub-source '{source.sub_source}' is not selected on feed {feed.id}"
                )

            try:
                result = self._merge(tenant, feed, source.sub_source, observations)
                feed.last_synced_at = datetime.now(UTC)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(
            "Merged %d rows into tenant %s feed %s/%r: %d inserted, %d updated, %d skipped",
            len(observations),
            tenant_id,
            source.source_id,
            source.sub_source,
            result.inserted,
            result.updated,
            result.skipped,
        )
        return result

    def _merge(
        self,
        tenant: Tenant,
        feed: Feed,
        sub_source: str,
        observations: Sequence[Mapping[str, Any] | RawObservation],
    ) -> MergeResult:
        stored: dict[_RowKey, MetricObservation] = {
            (o.date, o.category, o.metric_name, o.value_kind): o
            for o in self.observation_repo.get_for_source(tenant.id, feed.id, sub_source)
        }
        result = MergeResult()
        touched: set[date] = set()

        for index, row in enumerate(observations):
            try:
                raw = self._validate(tenant, row)
            except MalformedObservation as e:
                logger.debug("Skipping row %d for tenant %s: %s", index, tenant.id, e)
                result.skipped_rows.append(SkippedRow(index=index, reason=str(e)))
                continue

            outcome = self._upsert(
                stored, tenant, feed, sub_source,
                (raw.date, raw.category, raw.metric_name, raw.value_kind),
                raw.value,
            )
            if outcome is _Outcome.INSERTED:
                result.inserted += 1
            elif outcome is _Outcome.UPDATED:
                result.updated += 1
            else:
                result.skipped_rows.append(SkippedRow(index=index, reason=outcome.value))

            if raw.value_kind == ValueKind.ACTUAL:
                touched.add(raw.date)

        self._derive(tenant, feed, sub_source, touched, result)
        return result

    def _derive(
        self,
        tenant: Tenant,
        feed: Feed,
        sub_source: str,
        touched: set[date],
        result: MergeResult,
    ) -> None:
        """
        Recompute calculated metrics for every date a batch touched.

        Formula inputs are all of the tenant's actuals on that date, summed per
        normalized metric name across feeds, sub-sources and categories. A
        tenant has one calculated row per (date, formula): it is created under
        the merging feed and sub-source with category DERIVED_CATEGORY and
        updated in place by later merges from any source.
        """
        if not touched:
            return
        # rows staged by this batch must be visible to the queries below
        self.db.flush()

        actuals: dict[date, dict[str, float]] = defaultdict(dict)
        for obs in self.observation_repo.get_for_dates(tenant.id, touched, ValueKind.ACTUAL):
            if obs.value is None:
                continue
            name = normalize_metric_name(obs.metric_name)
            actuals[obs.date][name] = actuals[obs.date].get(name, 0.0) + obs.value

        derived: dict[_RowKey, MetricObservation] = {}
        for obs in self.observation_repo.get_for_dates(tenant.id, touched, ValueKind.CALCULATED):
            derived.setdefault(
                (obs.date, DERIVED_CATEGORY, obs.metric_name, ValueKind.CALCULATED), obs
            )

        for obs_date in sorted(touched):
            values = actuals[obs_date]
            for formula in applicable_formulas(set(values), self.formulas):
                outcome = self._upsert(
                    derived, tenant, feed, sub_source,
                    (obs_date, DERIVED_CATEGORY, formula.name, ValueKind.CALCULATED),
                    formula.evaluate(values),
                )
                if outcome is _Outcome.INSERTED:
                    result.derived_inserted += 1
                elif outcome is _Outcome.UPDATED:
                    result.derived_updated += 1

    def _upsert(
        self,
        stored: dict[_RowKey, MetricObservation],
        tenant: Tenant,
        feed: Feed,
        sub_source: str,
        key: _RowKey,
        value: float | None,
    ) -> _Outcome:
        existing = stored.get(key)
        if existing is None:
            obs_date, category, metric_name, value_kind = key
            observation = MetricObservation(
                tenant_id=tenant.id,
                feed_id=feed.id,
                source_kind=feed.kind,
                sub_source=sub_source,
                date=obs_date,
                category=category,
                metric_name=metric_name,
                value=value,
                value_kind=value_kind,
            )
            stored[key] = self.observation_repo.add_no_commit(observation)
            return _Outcome.INSERTED

        if existing.value == value:
            return _Outcome.UNCHANGED

        existing.value = value
        return _Outcome.UPDATED

    @staticmethod
    def _validate(tenant: Tenant, row: Mapping[str, Any] | RawObservation) -> RawObservation:
        if isinstance(row, RawObservation):
            raw = row
        else:
            try:
                raw = RawObservation.model_validate(row)
            except ValidationError as e:
                raise MalformedObservation(
                    "; ".join(
                        f"{'.'.join(str(part) for part in err['loc']) or 'row'}: {err['msg']}"
                        for err in e.errors()
                    )
                )
        if not tenant.allows_category(raw.category):
            raise MalformedObservation(f"category '{raw.category}' is not enabled for this tenant")
        return raw

    # ===== READS =====

    def get_series(
        self,
        principal_id: int,
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
        Read a tenant's canonical series (READ).

        Calculated values that could not be computed come back with value None.

        Raises:
            ForbiddenException: If principal cannot read the tenant
            ValidationException: If start_date is after end_date
        """
        self.policy.require(principal_id, tenant_id, Action.READ)

        if start_date and end_date and start_date > end_date:
            raise ValidationException("start_date must be on or before end_date")

        return self.observation_repo.get_with_filters(
            tenant_id=tenant_id,
            category=category,
            metric_name=metric_name,
            value_kind=value_kind,
            feed_id=feed_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )

    def goal_progress(
        self,
        principal_id: int,
        tenant_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[GoalProgress]:
        """
        Compare summed actuals against each of the tenant's goals (READ).

        Raises:
            ForbiddenException: If principal cannot read the tenant
            NotFoundException: If tenant not found
        """
        self.policy.require(principal_id, tenant_id, Action.READ)
        tenant = self.tenant_repo.get_by_id(tenant_id)
        if not tenant:
            raise NotFoundException("Tenant not found")

        goals = tenant.goals or {}
        totals = self.observation_repo.sum_actuals(tenant_id, list(goals), start_date, end_date)
        return [
            GoalProgress(metric_name=name, target=float(target), actual=totals.get(name, 0.0))
            for name, target in sorted(goals.items())
        ]
