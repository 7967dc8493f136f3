from pydantic import BaseModel, Field
from datetime import datetime
from dashboard.models.role import GlobalRole


class GrantRoleUpdate(BaseModel):
    """Set a principal's role (global or for one tenant)"""

    role: GlobalRole = Field(..., description="Role to assign")


class GrantResponse(BaseModel):
    """Grant details response"""

    id: int
    principal_id: int
    tenant_id: int | None
    role: GlobalRole
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
