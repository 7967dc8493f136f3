"""
Invitation lifecycle: issue, accept, revoke.

States are derived, never stored as a separate flag:
    PENDING  -> ACCEPTED  (accept with a valid token)
    PENDING  -> EXPIRED   (now >= expires_at, evaluated lazily)
    PENDING  -> REVOKED   (administrator revokes; used without a grant)
"""

import logging
import secrets
from datetime import datetime, timedelta, UTC

from sqlalchemy.orm import Session

from dashboard.config import settings
from dashboard.core.exceptions import (
    InvitationAlreadyUsed,
    InvitationExpired,
    InvitationNotFound,
    InvitationRevoked,
    NotFoundException,
    ValidationException,
)
from dashboard.models.grant import Grant
from dashboard.models.invitation import Invitation
from dashboard.models.role import Action, GlobalRole
from dashboard.repositories.invitation_repository import InvitationRepository
from dashboard.repositories.principal_repository import PrincipalRepository
from dashboard.repositories.tenant_repository import TenantRepository
from dashboard.schemas.invitation_schemas import InvitationCreate
from dashboard.services.access_policy import AccessPolicyEngine
from dashboard.services.grant_service import GrantService

logger = logging.getLogger(__name__)


def generate_invitation_token() -> str:
    """Unguessable bearer token from the OS CSPRNG"""
    return secrets.token_urlsafe(32)


class InvitationService:
    """Service layer for invitation business logic"""

    def __init__(self, db: Session, ttl: timedelta | None = None):
        self.db = db
        self.ttl = ttl or timedelta(days=settings.INVITATION_TTL_DAYS)
        self.invitation_repo = InvitationRepository(db)
        self.principal_repo = PrincipalRepository(db)
        self.tenant_repo = TenantRepository(db)
        self.policy = AccessPolicyEngine(db)
        self.grant_service = GrantService(db)

    def create_invitation(self, inviter_id: int, data: InvitationCreate) -> Invitation:
        """
        Issue an invitation for (email, tenant, role).

        A tenant invitation needs ADMIN_MANAGE_USERS on that tenant; a global
        one needs it at global scope. Only owners can invite owners, and the
        requested role is never silently downgraded. An actionable invitation
        for the same email and tenant is re-issued with a fresh token.

        Raises:
            ForbiddenException: If inviter lacks permission
            NotFoundException: If tenant not found
            ValidationException: If role is OWNER on a tenant
        """
        identity = self.policy.require(inviter_id, data.tenant_id, Action.ADMIN_MANAGE_USERS)
        self.policy.require_owner_for(identity, data.role)

        if data.tenant_id is not None:
            if data.role == GlobalRole.OWNER:
                raise ValidationException("Owner role can only be granted globally")
            if not self.tenant_repo.get_by_id(data.tenant_id):
                raise NotFoundException("Tenant not found")

        email = data.email.lower()
        now = datetime.now(UTC)
        expires_at = now + self.ttl

        for existing in self.invitation_repo.get_unused(email, data.tenant_id):
            if existing.is_actionable(now):
                existing.token = generate_invitation_token()
                existing.expires_at = expires_at
                existing.role = data.role
                existing.invited_by = inviter_id
                logger.info("Re-issued invitation %s for %s", existing.id, email)
                return self.invitation_repo.update(existing)

        invitation = Invitation(
            email=email,
            tenant_id=data.tenant_id,
            role=data.role,
            token=generate_invitation_token(),
            expires_at=expires_at,
            used=False,
            invited_by=inviter_id,
        )
        invitation = self.invitation_repo.create(invitation)
        logger.info(
            "Issued invitation %s for %s (tenant=%s, role=%s)",
            invitation.id,
            email,
            data.tenant_id,
            data.role.value,
        )
        return invitation

    def accept_invitation(self, token: str, principal_id: int) -> Grant:
        """
        Accept an invitation and activate its grant.

        Marks the invitation used and creates (or updates) exactly one grant
        for (principal, tenant) in the same transaction.

        Raises:
            InvitationNotFound: Unknown token
            InvitationRevoked: Revoked by an administrator
            InvitationAlreadyUsed: Already accepted
            InvitationExpired: Past its expiry
            NotFoundException: If principal not found
        """
        invitation = self.invitation_repo.get_by_token(token, lock=True)
        if invitation is None:
            raise InvitationNotFound("Invitation not found")
        if invitation.revoked_at is not None:
            raise InvitationRevoked("Invitation has been revoked")
        if invitation.used:
            raise InvitationAlreadyUsed("Invitation has already been used")
        now = datetime.now(UTC)
        if invitation.is_expired(now):
            raise InvitationExpired("Invitation has expired")
        if not self.principal_repo.get_by_id(principal_id):
            raise NotFoundException("Principal not found")

        try:
            grant = self.grant_service.stage_grant(principal_id, invitation.tenant_id, invitation.role)
            invitation.used = True
            invitation.used_at = now
            invitation.accepted_by = principal_id
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(grant)
        logger.info("Invitation %s accepted by principal %s", invitation.id, principal_id)
        return grant

    def revoke_invitation(self, actor_id: int, invitation_id: int) -> Invitation:
        """
        Revoke an unused invitation; no access is granted.

        Raises:
            NotFoundException: If invitation not found
            ForbiddenException: If actor cannot manage the invitation's scope
            InvitationAlreadyUsed: If it was already accepted or revoked
        """
        invitation = self.invitation_repo.get_by_id(invitation_id)
        if invitation is None:
            raise NotFoundException("Invitation not found")
        identity = self.policy.require(actor_id, invitation.tenant_id, Action.ADMIN_MANAGE_USERS)
        self.policy.require_owner_for(identity, invitation.role)

        if invitation.revoked_at is not None:
            raise InvitationRevoked("Invitation has already been revoked")
        if invitation.used:
            raise InvitationAlreadyUsed("Invitation has already been used")

        now = datetime.now(UTC)
        invitation.used = True
        invitation.revoked_at = now
        logger.info("Invitation %s revoked by principal %s", invitation.id, actor_id)
        return self.invitation_repo.update(invitation)

    def list_invitations(self, actor_id: int, tenant_id: int | None = None) -> list[Invitation]:
        """List a tenant's invitations, or the global ones when tenant_id is None"""
        self.policy.require(actor_id, tenant_id, Action.ADMIN_MANAGE_USERS)
        return self.invitation_repo.get_for_scope(tenant_id)
