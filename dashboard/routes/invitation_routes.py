from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from dashboard.database import get_db
from dashboard.dependencies import get_current_principal
from dashboard.models.invitation import Invitation
from dashboard.models.principal import Principal
from dashboard.services.invitation_service import InvitationService
from dashboard.schemas.grant_schemas import GrantResponse
from dashboard.schemas.invitation_schemas import (
    InvitationAccept,
    InvitationCreate,
    InvitationResponse,
    IssuedInvitationResponse,
)

router = APIRouter()


def _to_response(invitation: Invitation) -> dict:
    return {
        "id": invitation.id,
        "email": invitation.email,
        "tenant_id": invitation.tenant_id,
        "role": invitation.role,
        "status": invitation.status(),
        "expires_at": invitation.expires_at,
        "used_at": invitation.used_at,
        "revoked_at": invitation.revoked_at,
        "created_at": invitation.created_at,
    }


@router.post("", response_model=IssuedInvitationResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    invitation_data: InvitationCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Invite an email address to a tenant, or to a global role.

    - Tenant invitations **require OWNER**; global ones OWNER or OPERATOR
    - Only owners can invite owners
    - The token is returned once, for the delivery collaborator
    """
    invitation = InvitationService(db).create_invitation(principal.id, invitation_data)
    return {**_to_response(invitation), "token": invitation.token}


@router.get("", response_model=list[InvitationResponse])
async def list_invitations(
    tenant_id: Optional[int] = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """List a tenant's invitations, or the global ones when tenant_id is omitted."""
    invitations = InvitationService(db).list_invitations(principal.id, tenant_id)
    return [_to_response(invitation) for invitation in invitations]


@router.post("/accept", response_model=GrantResponse)
async def accept_invitation(
    accept_data: InvitationAccept,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Accept an invitation as the authenticated principal.

    Failure reasons: not_found (404), already_used / revoked (409), expired (410).
    """
    return InvitationService(db).accept_invitation(accept_data.token, principal.id)


@router.post("/{invitation_id}/revoke", response_model=InvitationResponse)
async def revoke_invitation(
    invitation_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Revoke an unused invitation without granting access."""
    invitation = InvitationService(db).revoke_invitation(principal.id, invitation_id)
    return _to_response(invitation)
