"""Identity resolver: turns a principal id into its effective roles."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dashboard.core.exceptions import ResolutionUnavailable
from dashboard.models.identity import ResolvedIdentity
from dashboard.models.role import GlobalRole
from dashboard.repositories.grant_repository import GrantRepository

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Read-only lookup of a principal's global role and tenant grants"""

    def __init__(self, db: Session):
        self.db = db
        self.grant_repo = GrantRepository(db)

    def resolve_identity(self, principal_id: int) -> ResolvedIdentity:
        """
        Resolve a principal's global role and tenant-scoped grants.

        A principal without a global grant is a MEMBER with access to exactly
        the tenants it holds grants for; nothing is implied.

        Args:
            principal_id: Internal principal id

        Returns:
            ResolvedIdentity

        Raises:
            ResolutionUnavailable: If the grant store cannot be read
        """
        try:
            global_grant = self.grant_repo.get_global_grant(principal_id)
            tenant_grants = self.grant_repo.get_principal_tenant_grants(principal_id)
        except SQLAlchemyError as e:
            logger.error("Grant lookup failed for principal %s: %s", principal_id, e)
            raise ResolutionUnavailable("Identity could not be resolved") from e

        global_role = global_grant.role if global_grant else GlobalRole.MEMBER
        return ResolvedIdentity(
            principal_id=principal_id,
            global_role=global_role,
            tenant_grants=tuple((g.tenant_id, g.role) for g in tenant_grants),
        )
