from pydantic import BaseModel
from dashboard.models.role import Action, Decision, GlobalRole


class TenantGrantResponse(BaseModel):
    """One tenant-scoped role of the resolved principal"""

    tenant_id: int
    role: GlobalRole


class IdentityResponse(BaseModel):
    """Resolved identity of the authenticated principal"""

    principal_id: int
    auth_user_id: str
    email: str | None
    global_role: GlobalRole
    tenant_grants: list[TenantGrantResponse]


class AccessDecisionResponse(BaseModel):
    """Result of an authorization check"""

    tenant_id: int | None
    action: Action
    decision: Decision
