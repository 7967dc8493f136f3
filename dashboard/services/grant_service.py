import logging

from sqlalchemy.orm import Session

from dashboard.core.exceptions import NotFoundException, ValidationException
from dashboard.models.grant import Grant
from dashboard.models.role import Action, GlobalRole
from dashboard.repositories.grant_repository import GrantRepository
from dashboard.repositories.principal_repository import PrincipalRepository
from dashboard.repositories.tenant_repository import TenantRepository
from dashboard.services.access_policy import AccessPolicyEngine

logger = logging.getLogger(__name__)


class GrantService:
    """Service layer for grant transitions (role changes and revocations)"""

    def __init__(self, db: Session):
        self.db = db
        self.grant_repo = GrantRepository(db)
        self.principal_repo = PrincipalRepository(db)
        self.tenant_repo = TenantRepository(db)
        self.policy = AccessPolicyEngine(db)

    def list_tenant_grants(self, actor_id: int, tenant_id: int) -> list[Grant]:
        """
        List the grants scoped to a tenant.

        Raises:
            ForbiddenException: If actor cannot manage the tenant's users
            NotFoundException: If tenant not found
        """
        self.policy.require(actor_id, tenant_id, Action.ADMIN_MANAGE_USERS)
        self._get_tenant(tenant_id)
        return self.grant_repo.get_tenant_grants(tenant_id)

    def set_tenant_grant(
        self, actor_id: int, principal_id: int, tenant_id: int, role: GlobalRole
    ) -> Grant:
        """
        Give a principal a role in one tenant, replacing any previous role.

        Raises:
            ForbiddenException: If actor cannot manage the tenant's users
            NotFoundException: If principal or tenant not found
            ValidationException: If role is OWNER
        """
        self.policy.require(actor_id, tenant_id, Action.ADMIN_MANAGE_USERS)
        self._get_tenant(tenant_id)
        self._get_principal(principal_id)
        grant = self.upsert_grant(principal_id, tenant_id, role)
        logger.info("Principal %s now %s on tenant %s", principal_id, role.value, tenant_id)
        return grant

    def revoke_tenant_grant(self, actor_id: int, principal_id: int, tenant_id: int) -> None:
        """
        Remove a principal's access to one tenant.

        Raises:
            ForbiddenException: If actor cannot manage the tenant's users
            NotFoundException: If the grant does not exist
        """
        self.policy.require(actor_id, tenant_id, Action.ADMIN_MANAGE_USERS)
        grant = self.grant_repo.get_tenant_grant(principal_id, tenant_id)
        if not grant:
            raise NotFoundException("Grant not found for this tenant")
        self.grant_repo.delete(grant)
        logger.info("Revoked tenant %s access of principal %s", tenant_id, principal_id)

    def set_global_role(self, actor_id: int, principal_id: int, role: GlobalRole) -> Grant:
        """
        Set a principal's global role in a single transition.

        Raises:
            ForbiddenException: If actor may not manage users globally, or the
                change involves OWNER and the actor is not an owner
            LastOwnerRevocationRejected: If it would downgrade the last owner
            NotFoundException: If principal not found
        """
        identity = self.policy.require(actor_id, None, Action.ADMIN_MANAGE_USERS)
        self._get_principal(principal_id)
        current = self.grant_repo.get_global_grant(principal_id)
        self.policy.require_owner_for(identity, role, current.role if current else None)
        grant = self.upsert_grant(principal_id, None, role)
        logger.info("Principal %s global role set to %s", principal_id, role.value)
        return grant

    def revoke_global_grant(self, actor_id: int, principal_id: int) -> None:
        """
        Remove a principal's global grant (it falls back to MEMBER).

        Raises:
            ForbiddenException: If actor lacks permission
            LastOwnerRevocationRejected: If the grant is the last owner grant
            NotFoundException: If principal has no global grant
        """
        identity = self.policy.require(actor_id, None, Action.ADMIN_MANAGE_USERS)
        grant = self.grant_repo.get_global_grant(principal_id)
        if not grant:
            raise NotFoundException("Principal has no global grant")
        self.policy.require_owner_for(identity, grant.role)
        self.policy.ensure_owner_remains(grant, None)
        self.grant_repo.delete(grant)
        logger.info("Revoked global grant of principal %s", principal_id)

    def upsert_grant(self, principal_id: int, tenant_id: int | None, role: GlobalRole) -> Grant:
        """
        Create or update the grant for (principal, tenant) without authorization.

        Used by invitation acceptance and bootstrap. An existing grant has its
        role replaced rather than raising a duplicate error.

        Raises:
            ValidationException: If role is OWNER on a tenant
            LastOwnerRevocationRejected: If it would downgrade the last owner
        """
        grant = self.stage_grant(principal_id, tenant_id, role)
        self.db.commit()
        self.db.refresh(grant)
        return grant

    def stage_grant(self, principal_id: int, tenant_id: int | None, role: GlobalRole) -> Grant:
        """Same as upsert_grant, but flushes without committing"""
        if tenant_id is not None and role == GlobalRole.OWNER:
            raise ValidationException("Owner role can only be granted globally")

        grant = self.grant_repo.get_grant(principal_id, tenant_id)
        if grant is None:
            return self.grant_repo.add(Grant(principal_id=principal_id, tenant_id=tenant_id, role=role))

        self.policy.ensure_owner_remains(grant, role)
        grant.role = role
        self.db.flush()
        return grant

    def bootstrap_owner(self, auth_user_id: str, email: str | None = None) -> Grant | None:
        """
        Grant OWNER to a configured principal when the system has no owner yet.

        Returns:
            The new grant, or None when an owner already exists
        """
        if self.grant_repo.get_global_owner_grants():
            return None
        principal = self.principal_repo.get_or_create_by_auth_id(auth_user_id, email)
        grant = self.upsert_grant(principal.id, None, GlobalRole.OWNER)
        logger.warning("Bootstrapped owner grant for %s", auth_user_id)
        return grant

    def _get_tenant(self, tenant_id: int):
        tenant = self.tenant_repo.get_by_id(tenant_id)
        if not tenant:
            raise NotFoundException("Tenant not found")
        return tenant

    def _get_principal(self, principal_id: int):
        principal = self.principal_repo.get_by_id(principal_id)
        if not principal:
            raise NotFoundException("Principal not found")
        return principal
