from sqlalchemy.orm import Session
from dashboard.models.feed import Feed


class FeedRepository:
    """Repository for Feed model operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_tenant(self, tenant_id: int) -> list[Feed]:
        """Get all feeds for a tenant"""
        return self.db.query(Feed).filter(Feed.tenant_id == tenant_id).order_by(Feed.id).all()

    def get_by_id_and_tenant(self, feed_id: int, tenant_id: int) -> Feed | None:
        """
        Get feed ensuring it belongs to the tenant (multi-tenant safety).

        Returns None if feed doesn't exist or belongs to another tenant.
        """
        return (
            self.db.query(Feed)
            .filter(Feed.id == feed_id, Feed.tenant_id == tenant_id)
            .first()
        )

    def create(self, feed: Feed) -> Feed:
        """Create new feed"""
        self.db.add(feed)
        self.db.commit()
        self.db.refresh(feed)
        return feed

    def update(self, feed: Feed) -> Feed:
        """Update existing feed"""
        self.db.commit()
        self.db.refresh(feed)
        return feed

    def delete_no_commit(self, feed_id: int) -> int:
        """Delete one feed without committing (observations removed by caller)"""
        return self.db.query(Feed).filter(Feed.id == feed_id).delete(synchronize_session=False)

    def delete_for_tenant(self, tenant_id: int) -> int:
        """Delete all feeds of a tenant without committing"""
        return (
            self.db.query(Feed)
            .filter(Feed.tenant_id == tenant_id)
            .delete(synchronize_session=False)
        )
