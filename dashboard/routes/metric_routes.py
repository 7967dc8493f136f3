from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from dashboard.database import get_db
from dashboard.dependencies import get_current_principal
from dashboard.models.observation import ValueKind
from dashboard.models.principal import Principal
from dashboard.services.ingestion_service import IngestionReconciler, SourceDescriptor
from dashboard.schemas.observation_schemas import (
    GoalProgressResponse,
    MergeRequest,
    MergeResponse,
    ObservationListResponse,
)

router = APIRouter()


@router.post("/{tenant_id}/feeds/{feed_id}/observations", response_model=MergeResponse)
def merge_observations(
    tenant_id: int,
    feed_id: int,
    merge_request: MergeRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Merge a batch of imported rows from one feed sub-source.

    - Requires WRITE on the tenant; a denied batch merges nothing
    - Rows are upserted by (feed, sub-source, date, category, metric, kind)
    - Malformed rows are skipped with a reason, the rest still merge
    - Re-sending the same batch changes nothing
    """
    service = IngestionReconciler(db)
    result = service.merge_observations(
        principal.id,
        tenant_id,
        SourceDescriptor(source_id=feed_id, sub_source=merge_request.sub_source),
        merge_request.observations,
    )
    return {
        "inserted": result.inserted,
        "updated": result.updated,
        "skipped": result.skipped,
        "skipped_rows": [
            {"index": skipped.index, "reason": skipped.reason} for skipped in result.skipped_rows
        ],
        "derived_inserted": result.derived_inserted,
        "derived_updated": result.derived_updated,
    }


@router.get("/{tenant_id}/metrics", response_model=ObservationListResponse)
def get_metrics(
    tenant_id: int,
    category: Optional[str] = Query(None),
    metric_name: Optional[str] = Query(None),
    value_kind: Optional[ValueKind] = Query(None),
    feed_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(1000, ge=1, le=10000),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Read the tenant's metric series (READ).

    Calculated values that cannot be computed are returned as null.
    """
    service = IngestionReconciler(db)
    observations, total = service.get_series(
        principal.id,
        tenant_id,
        category=category,
        metric_name=metric_name,
        value_kind=value_kind,
        feed_id=feed_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return {"observations": observations, "total": total}


@router.get("/{tenant_id}/goals/progress", response_model=list[GoalProgressResponse])
def get_goal_progress(
    tenant_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Summed actuals against each tenant goal over a date window (READ)."""
    service = IngestionReconciler(db)
    progress = service.goal_progress(principal.id, tenant_id, start_date, end_date)
    return [
        {
            "metric_name": p.metric_name,
            "target": p.target,
            "actual": p.actual,
            "percent": p.percent,
        }
        for p in progress
    ]
