from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from dashboard.models.invitation import InvitationStatus
from dashboard.models.role import GlobalRole


class InvitationCreate(BaseModel):
    """Invite an email address to a tenant (or globally when tenant_id is omitted)"""

    email: EmailStr
    tenant_id: int | None = Field(None, description="Tenant to grant access to, None for a global role")
    role: GlobalRole = Field(default=GlobalRole.MEMBER, description="Role to grant (default: MEMBER)")


class InvitationAccept(BaseModel):
    """Accept an invitation as the authenticated principal"""

    token: str = Field(..., min_length=1)


class InvitationResponse(BaseModel):
    """Invitation details; the token is only returned when the invitation is issued"""

    id: int
    email: str
    tenant_id: int | None
    role: GlobalRole
    status: InvitationStatus
    expires_at: datetime
    used_at: datetime | None
    revoked_at: datetime | None
    created_at: datetime


class IssuedInvitationResponse(InvitationResponse):
    """Newly issued invitation, handed to the delivery collaborator"""

    token: str
