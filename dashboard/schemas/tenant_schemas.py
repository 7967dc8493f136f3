from pydantic import BaseModel, Field
from datetime import datetime
from dashboard.models.feed import FeedKind
from dashboard.models.tenant import TenantKind


class TenantCreate(BaseModel):
    """Create a tenant (OWNER or OPERATOR)"""

    name: str = Field(..., min_length=1, max_length=255)
    slug: str | None = Field(
        None, min_length=1, max_length=255, description="Routing slug, derived from name if omitted"
    )
    kind: TenantKind = Field(default=TenantKind.STANDARD)
    categories: list[str] = Field(default_factory=list, description="Category allow-list, empty = all")
    goals: dict[str, float] = Field(default_factory=dict, description="Monthly targets by metric name")


class TenantUpdate(BaseModel):
    """Partial tenant update; omitted fields are left unchanged"""

    name: str | None = Field(None, min_length=1, max_length=255)
    slug: str | None = Field(None, min_length=1, max_length=255)
    kind: TenantKind | None = None
    categories: list[str] | None = None
    goals: dict[str, float] | None = None


class TenantResponse(BaseModel):
    """Tenant details response"""

    id: int
    name: str
    slug: str
    kind: TenantKind
    categories: list[str]
    goals: dict[str, float]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class FeedCreate(BaseModel):
    """Attach a data source to a tenant"""

    kind: FeedKind
    locator: str = Field(..., min_length=1, max_length=512, description="Spreadsheet id or filename")
    sub_sources: list[str] = Field(default_factory=list, description="Selected tabs or import batches")


class FeedUpdate(BaseModel):
    """Change a feed's locator or selected sub-sources"""

    locator: str | None = Field(None, min_length=1, max_length=512)
    sub_sources: list[str] | None = None


class FeedResponse(BaseModel):
    """Feed details response"""

    id: int
    tenant_id: int
    kind: FeedKind
    locator: str
    sub_sources: list[str]
    last_synced_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
