from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from dashboard.database import get_db
from dashboard.dependencies import get_current_principal
from dashboard.models.principal import Principal
from dashboard.services.tenant_directory import TenantDirectory
from dashboard.schemas.tenant_schemas import (
    FeedCreate,
    FeedResponse,
    FeedUpdate,
    TenantCreate,
    TenantResponse,
    TenantUpdate,
)

router = APIRouter()


@router.get("", response_model=list[TenantResponse])
async def list_tenants(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    List the tenants visible to the authenticated principal.

    Owners and operators see every tenant; members see the tenants they
    hold a grant for.
    """
    return TenantDirectory(db).list_tenants_visible_to(principal.id)


@router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    tenant_data: TenantCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Create a tenant.

    - **Requires OWNER or OPERATOR**
    - Slug derived from the name when omitted
    - 409 when the slug is taken
    """
    return TenantDirectory(db).create_tenant(principal.id, tenant_data)


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Get tenant details (READ)."""
    return TenantDirectory(db).get_tenant(principal.id, tenant_id)


@router.patch("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: int,
    tenant_update: TenantUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Update tenant details.

    - **Requires OWNER or OPERATOR**
    - Omitted fields are left unchanged
    """
    return TenantDirectory(db).update_tenant(principal.id, tenant_id, tenant_update)


@router.delete("/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tenant(
    tenant_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Delete a tenant.

    - **Requires OWNER or OPERATOR**
    - Irreversible: removes feeds, grants and metric data in one transaction
    """
    TenantDirectory(db).delete_tenant(principal.id, tenant_id)


@router.get("/{tenant_id}/feeds", response_model=list[FeedResponse])
async def list_feeds(
    tenant_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """List the tenant's data feeds (READ)."""
    return TenantDirectory(db).list_feeds(principal.id, tenant_id)


@router.post(
    "/{tenant_id}/feeds",
    response_model=FeedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_feed(
    tenant_id: int,
    feed_data: FeedCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Attach a spreadsheet or file-import feed (WRITE)."""
    return TenantDirectory(db).add_feed(principal.id, tenant_id, feed_data)


@router.patch("/{tenant_id}/feeds/{feed_id}", response_model=FeedResponse)
async def update_feed(
    tenant_id: int,
    feed_id: int,
    feed_update: FeedUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Change a feed's locator or selected sub-sources (WRITE)."""
    return TenantDirectory(db).update_feed(principal.id, tenant_id, feed_id, feed_update)


@router.delete("/{tenant_id}/feeds/{feed_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_feed(
    tenant_id: int,
    feed_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Detach a feed and delete its observations (WRITE)."""
    TenantDirectory(db).remove_feed(principal.id, tenant_id, feed_id)
