"""Repository for Grant model operations."""

from sqlalchemy.orm import Session
from dashboard.models.grant import Grant
from dashboard.models.role import GlobalRole


class GrantRepository:
    """Repository for Grant model operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_global_grant(self, principal_id: int) -> Grant | None:
        """
        Get the global grant (tenant_id IS NULL) of a principal.

        Args:
            principal_id: Principal ID

        Returns:
            Grant object or None if the principal has no global grant
        """
        return (
            self.db.query(Grant)
            .filter(Grant.principal_id == principal_id, Grant.tenant_id.is_(None))
            .first()
        )

    def get_tenant_grant(self, principal_id: int, tenant_id: int) -> Grant | None:
        """
        Get the grant of a principal in a specific tenant.

        Args:
            principal_id: Principal ID
            tenant_id: Tenant ID

        Returns:
            Grant object or None if not found
        """
        return (
            self.db.query(Grant)
            .filter(Grant.principal_id == principal_id, Grant.tenant_id == tenant_id)
            .first()
        )

    def get_grant(self, principal_id: int, tenant_id: int | None) -> Grant | None:
        """Global grant when tenant_id is None, tenant grant otherwise"""
        if tenant_id is None:
            return self.get_global_grant(principal_id)
        return self.get_tenant_grant(principal_id, tenant_id)

    def get_principal_tenant_grants(self, principal_id: int) -> list[Grant]:
        """
        Get all tenant-scoped grants of a principal.

        Args:
            principal_id: Principal ID

        Returns:
            List of Grant objects, ordered by tenant
        """
        return (
            self.db.query(Grant)
            .filter(Grant.principal_id == principal_id, Grant.tenant_id.is_not(None))
            .order_by(Grant.tenant_id)
            .all()
        )

    def get_tenant_grants(self, tenant_id: int) -> list[Grant]:
        """Get all grants scoped to a tenant"""
        return (
            self.db.query(Grant)
            .filter(Grant.tenant_id == tenant_id)
            .order_by(Grant.principal_id)
            .all()
        )

    def get_global_owner_grants(self, lock: bool = False) -> list[Grant]:
        """
        Get every global OWNER grant.

        Args:
            lock: Take row locks (SELECT ... FOR UPDATE) so concurrent
                downgrades of different owners serialize

        Returns:
            List of Grant objects
        """
        query = self.db.query(Grant).filter(
            Grant.tenant_id.is_(None), Grant.role == GlobalRole.OWNER
        )
        if lock:
            query = query.with_for_update()
        return query.all()

    def add(self, grant: Grant) -> Grant:
        """Stage a new grant without committing (for atomic ops)"""
        self.db.add(grant)
        self.db.flush()
        return grant

    def delete(self, grant: Grant) -> None:
        """Revoke a grant"""
        self.db.delete(grant)
        self.db.commit()

    def delete_for_tenant(self, tenant_id: int) -> int:
        """Delete all grants of a tenant without committing"""
        return (
            self.db.query(Grant)
            .filter(Grant.tenant_id == tenant_id)
            .delete(synchronize_session=False)
        )
