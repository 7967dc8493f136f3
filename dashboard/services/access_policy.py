"""Access policy engine: allow/deny for (principal, tenant, action)."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dashboard.core.exceptions import (
    ForbiddenException,
    LastOwnerRevocationRejected,
    ResolutionUnavailable,
)
from dashboard.models.grant import Grant
from dashboard.models.identity import ResolvedIdentity
from dashboard.models.role import Action, Decision, GlobalRole, TENANT_GRANT_PERMISSIONS
from dashboard.repositories.grant_repository import GrantRepository
from dashboard.repositories.tenant_repository import TenantRepository
from dashboard.services.identity_service import IdentityResolver

logger = logging.getLogger(__name__)


class AccessPolicyEngine:
    """
    Single place where authorization decisions are made.

    Rules, first match wins:
    1. Global OWNER: allow everything.
    2. No tenant (global-scope action): allow OPERATOR, deny MEMBER.
    3. Global OPERATOR: allow READ/WRITE on any tenant, deny admin actions.
    4. Internal operator dashboards (and unknown tenants): deny.
    5. Tenant grant: allow the actions its role permits.
    6. Deny.
    """

    def __init__(self, db: Session):
        self.db = db
        self.identity_resolver = IdentityResolver(db)
        self.tenant_repo = TenantRepository(db)
        self.grant_repo = GrantRepository(db)

    def authorize(self, principal_id: int, tenant_id: int | None, action: Action) -> Decision:
        """
        Decide whether a principal may perform an action.

        Raises:
            ResolutionUnavailable: If identity or tenant data cannot be read.
                No decision is made in that case.
        """
        identity = self.identity_resolver.resolve_identity(principal_id)
        return self.decide(identity, tenant_id, action)

    def decide(self, identity: ResolvedIdentity, tenant_id: int | None, action: Action) -> Decision:
        """Apply the policy rules to an already resolved identity"""
        if identity.global_role == GlobalRole.OWNER:
            return Decision.ALLOW

        if tenant_id is None:
            if identity.global_role == GlobalRole.OPERATOR:
                return Decision.ALLOW
            return Decision.DENY

        if identity.global_role == GlobalRole.OPERATOR:
            if action in (Action.READ, Action.WRITE):
                return Decision.ALLOW
            return Decision.DENY

        try:
            tenant = self.tenant_repo.get_by_id(tenant_id)
        except SQLAlchemyError as e:
            raise ResolutionUnavailable("Tenant could not be resolved") from e

        # Internal dashboards ignore tenant grants entirely
        if tenant is None or tenant.is_internal:
            return Decision.DENY

        role = identity.role_for(tenant_id)
        if role is not None and action in TENANT_GRANT_PERMISSIONS.get(role, frozenset()):
            return Decision.ALLOW
        return Decision.DENY

    def require(self, principal_id: int, tenant_id: int | None, action: Action) -> ResolvedIdentity:
        """
        Authorize or raise.

        Returns:
            The resolved identity, for callers that need the role afterwards

        Raises:
            ForbiddenException: If the decision is DENY
            ResolutionUnavailable: If the identity cannot be resolved
        """
        identity = self.identity_resolver.resolve_identity(principal_id)
        if not self.decide(identity, tenant_id, action).allowed:
            logger.warning(
                "Denied %s on tenant %s for principal %s", action.value, tenant_id, principal_id
            )
            raise ForbiddenException(f"Not permitted to {action.value.replace('_', ' ')}")
        return identity

    def require_owner_for(self, identity: ResolvedIdentity, *roles: GlobalRole | None) -> None:
        """
        Only an owner may hand out, change, or take away the OWNER role.

        Raises:
            ForbiddenException: If any role involved is OWNER and the actor is not
        """
        if GlobalRole.OWNER in roles and not identity.is_owner():
            raise ForbiddenException("Only an owner can grant or revoke the owner role")

    def ensure_owner_remains(self, grant: Grant | None, new_role: GlobalRole | None) -> None:
        """
        Reject a change that would leave the system without a global owner.

        Args:
            grant: Grant about to change (None when no grant exists yet)
            new_role: Role it will have afterwards, None when it is revoked

        Raises:
            LastOwnerRevocationRejected: If grant is the only global OWNER grant
                and it would be deleted or downgraded
        """
        if grant is None or not grant.is_global or grant.role != GlobalRole.OWNER:
            return
        if new_role == GlobalRole.OWNER:
            return
        owners = self.grant_repo.get_global_owner_grants(lock=True)
        if len(owners) <= 1:
            logger.warning("Rejected change of last owner grant (principal %s)", grant.principal_id)
            raise LastOwnerRevocationRejected()
