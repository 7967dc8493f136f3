from datetime import date, datetime
from typing import Any
from pydantic import AliasChoices, BaseModel, Field, field_validator

from dashboard.models.observation import ValueKind


class RawObservation(BaseModel):
    """
    One imported row, validated individually by the reconciler.

    Accepts both snake_case and camelCase field names as produced by the
    spreadsheet and file importers.
    """

    model_config = {"str_strip_whitespace": True}

    date: date
    category: str = Field(..., min_length=1, max_length=100)
    metric_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("metric_name", "metricName", "metric"),
    )
    value: float = Field(..., allow_inf_nan=False)
    value_kind: ValueKind = Field(
        default=ValueKind.ACTUAL,
        validation_alias=AliasChoices("value_kind", "valueKind", "kind"),
    )

    @field_validator("value_kind")
    @classmethod
    def reject_calculated(cls, value_kind: ValueKind) -> ValueKind:
        if value_kind == ValueKind.CALCULATED:
            raise ValueError("calculated values are derived during merge and cannot be imported")
        return value_kind


class MergeRequest(BaseModel):
    """A batch of raw rows from one feed sub-source (sheet tab or import batch)"""

    sub_source: str = Field(default="", max_length=255)
    # Rows stay untyped here so one bad row cannot reject the whole request
    observations: list[dict[str, Any]] = Field(default_factory=list)


class SkippedRowResponse(BaseModel):
    index: int
    reason: str


class MergeResponse(BaseModel):
    """Counts of a merge; skipped rows carry their reason"""

    inserted: int
    updated: int
    skipped: int
    skipped_rows: list[SkippedRowResponse]
    derived_inserted: int
    derived_updated: int

    model_config = {"from_attributes": True}


class ObservationResponse(BaseModel):
    """Schema for a stored observation"""

    model_config = {"from_attributes": True}

    id: int
    tenant_id: int
    feed_id: int
    sub_source: str
    date: date
    category: str
    metric_name: str
    value: float | None
    value_kind: ValueKind
    updated_at: datetime


class ObservationListResponse(BaseModel):
    """Schema for list of observations"""

    observations: list[ObservationResponse]
    total: int


class GoalProgressResponse(BaseModel):
    """Actual total against a tenant goal; percent is None when not computable"""

    metric_name: str
    target: float
    actual: float
    percent: float | None
