from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from dashboard.database import get_db
from dashboard.dependencies import get_current_principal
from dashboard.models.principal import Principal
from dashboard.services.grant_service import GrantService
from dashboard.schemas.grant_schemas import GrantResponse, GrantRoleUpdate

# Mounted under /api/tenants
tenant_router = APIRouter()
# Mounted under /api/grants
global_router = APIRouter()


@tenant_router.get("/{tenant_id}/grants", response_model=list[GrantResponse])
async def list_tenant_grants(
    tenant_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """List who has access to a tenant. **Requires OWNER**"""
    return GrantService(db).list_tenant_grants(principal.id, tenant_id)


@tenant_router.put("/{tenant_id}/grants/{principal_id}", response_model=GrantResponse)
async def set_tenant_grant(
    tenant_id: int,
    principal_id: int,
    role_update: GrantRoleUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Give a principal a role in this tenant.

    - **Requires OWNER**
    - Replaces any existing role (no duplicate grants)
    - OWNER cannot be granted per tenant
    """
    return GrantService(db).set_tenant_grant(principal.id, principal_id, tenant_id, role_update.role)


@tenant_router.delete(
    "/{tenant_id}/grants/{principal_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def revoke_tenant_grant(
    tenant_id: int,
    principal_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Remove a principal's access to this tenant. **Requires OWNER**"""
    GrantService(db).revoke_tenant_grant(principal.id, principal_id, tenant_id)


@global_router.put("/global/{principal_id}", response_model=GrantResponse)
async def set_global_role(
    principal_id: int,
    role_update: GrantRoleUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Set a principal's global role.

    - **Requires OWNER or OPERATOR**; only owners can grant or remove OWNER
    - 409 when it would downgrade the last owner
    """
    return GrantService(db).set_global_role(principal.id, principal_id, role_update.role)


@global_router.delete("/global/{principal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_global_grant(
    principal_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Remove a principal's global grant (falls back to MEMBER).

    - 409 when it is the last owner grant
    """
    GrantService(db).revoke_global_grant(principal.id, principal_id)
