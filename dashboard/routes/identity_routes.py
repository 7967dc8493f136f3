from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from dashboard.database import get_db
from dashboard.dependencies import get_current_principal
from dashboard.models.principal import Principal
from dashboard.models.role import Action
from dashboard.services.access_policy import AccessPolicyEngine
from dashboard.services.identity_service import IdentityResolver
from dashboard.schemas.identity_schemas import AccessDecisionResponse, IdentityResponse

router = APIRouter()


@router.get("/me", response_model=IdentityResponse)
async def get_identity(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Resolve the authenticated principal's roles.

    Returns the global role (MEMBER when none is granted) and every
    tenant-scoped grant.
    """
    identity = IdentityResolver(db).resolve_identity(principal.id)
    return {
        "principal_id": principal.id,
        "auth_user_id": principal.auth_user_id,
        "email": principal.email,
        "global_role": identity.global_role,
        "tenant_grants": [
            {"tenant_id": tenant_id, "role": role} for tenant_id, role in identity.tenant_grants
        ],
    }


@router.get("/access", response_model=AccessDecisionResponse)
async def check_access(
    action: Action = Query(...),
    tenant_id: int | None = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Ask the access policy engine whether the principal may perform an action.

    Omit tenant_id for global-scope actions.
    """
    decision = AccessPolicyEngine(db).authorize(principal.id, tenant_id, action)
    return {"tenant_id": tenant_id, "action": action, "decision": decision}
