"""Repository for Tenant model operations."""

from sqlalchemy.orm import Session
from dashboard.models.tenant import Tenant, TenantKind


class TenantRepository:
    """Repository for Tenant model operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, tenant_id: int, lock: bool = False) -> Tenant | None:
        """
        Get tenant by ID.

        Args:
            tenant_id: Tenant ID
            lock: Row-lock the tenant (SELECT ... FOR UPDATE) until commit

        Returns:
            Tenant object or None if not found
        """
        query = self.db.query(Tenant).filter(Tenant.id == tenant_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get_by_slug(self, slug: str) -> Tenant | None:
        """Get tenant by routing slug"""
        return self.db.query(Tenant).filter(Tenant.slug == slug).first()

    def get_all(self) -> list[Tenant]:
        """
        Get all tenants.

        Returns:
            List of all Tenant objects ordered by name
        """
        return self.db.query(Tenant).order_by(Tenant.name, Tenant.id).all()

    def get_many(self, tenant_ids: list[int], exclude_kind: TenantKind | None = None) -> list[Tenant]:
        """
        Get tenants by id.

        Args:
            tenant_ids: Tenant IDs to load
            exclude_kind: Optional kind to leave out

        Returns:
            List of Tenant objects ordered by name
        """
        if not tenant_ids:
            return []
        query = self.db.query(Tenant).filter(Tenant.id.in_(tenant_ids))
        if exclude_kind is not None:
            query = query.filter(Tenant.kind != exclude_kind)
        return query.order_by(Tenant.name, Tenant.id).all()

    def create(self, tenant: Tenant) -> Tenant:
        """
        Create a new tenant.

        Raises:
            IntegrityError: If the slug already exists
        """
        self.db.add(tenant)
        self.db.commit()
        self.db.refresh(tenant)
        return tenant

    def update(self, tenant: Tenant) -> Tenant:
        """Commit changes to an existing tenant"""
        self.db.commit()
        self.db.refresh(tenant)
        return tenant

    def delete_no_commit(self, tenant_id: int) -> int:
        """
        Delete the tenant row without committing.

        WARNING: children must already be removed in the same transaction.
        """
        return (
            self.db.query(Tenant)
            .filter(Tenant.id == tenant_id)
            .delete(synchronize_session=False)
        )
