import logging
import re
from datetime import datetime, UTC

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dashboard.core.exceptions import (
    DuplicateSlugException,
    NotFoundException,
    ValidationException,
)
from dashboard.core.locks import tenant_locks
from dashboard.models.feed import Feed
from dashboard.models.role import Action
from dashboard.models.tenant import Tenant, TenantKind
from dashboard.repositories.feed_repository import FeedRepository
from dashboard.repositories.grant_repository import GrantRepository
from dashboard.repositories.invitation_repository import InvitationRepository
from dashboard.repositories.observation_repository import ObservationRepository
from dashboard.repositories.tenant_repository import TenantRepository
from dashboard.schemas.tenant_schemas import FeedCreate, FeedUpdate, TenantCreate, TenantUpdate
from dashboard.services.access_policy import AccessPolicyEngine

logger = logging.getLogger(__name__)


def slugify(text: str) -> str:
    """
    Generate a URL-friendly slug.

    "Acme Roofing, Inc." -> "acme-roofing-inc"
    """
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


class TenantDirectory:
    """
    Service layer for tenant and feed management.

    The directory never decides access itself: every operation asks the
    access policy engine first. Creating, updating and deleting tenants is a
    global-scope user-management action (owners and operators).
    """

    def __init__(self, db: Session):
        self.db = db
        self.tenant_repo = TenantRepository(db)
        self.feed_repo = FeedRepository(db)
        self.grant_repo = GrantRepository(db)
        self.observation_repo = ObservationRepository(db)
        self.invitation_repo = InvitationRepository(db)
        self.policy = AccessPolicyEngine(db)

    def list_tenants_visible_to(self, principal_id: int) -> list[Tenant]:
        """
        List the tenants a principal can see.

        Owners and operators see every tenant. Members see exactly the
        tenants they hold a grant for, never an internal operator dashboard.
        """
        identity = self.policy.identity_resolver.resolve_identity(principal_id)
        if identity.is_operator_or_higher():
            return self.tenant_repo.get_all()
        return self.tenant_repo.get_many(
            identity.tenant_ids, exclude_kind=TenantKind.INTERNAL_OPERATOR_DASHBOARD
        )

    def get_tenant(self, principal_id: int, tenant_id: int) -> Tenant:
        """
        Get tenant details.

        Raises:
            ForbiddenException: If principal cannot read the tenant
            NotFoundException: If tenant not found
        """
        self.policy.require(principal_id, tenant_id, Action.READ)
        return self._get_tenant(tenant_id)

    def create_tenant(self, principal_id: int, data: TenantCreate) -> Tenant:
        """
        Create a tenant.

        Raises:
            ForbiddenException: If principal is not an owner or operator
            DuplicateSlugException: If the slug is taken
            ValidationException: If no slug can be derived from the name
        """
        self.policy.require(principal_id, None, Action.ADMIN_MANAGE_USERS)

        slug = slugify(data.slug or data.name)
        if not slug:
            raise ValidationException("Tenant slug cannot be empty")
        if self.tenant_repo.get_by_slug(slug):
            raise DuplicateSlugException(slug)

        tenant = Tenant(
            name=data.name,
            slug=slug,
            kind=data.kind,
            categories=list(data.categories),
            goals=dict(data.goals),
        )
        try:
            tenant = self.tenant_repo.create(tenant)
        except IntegrityError:
            # Lost a race with another creation of the same slug
            self.db.rollback()
            raise DuplicateSlugException(slug)

        logger.info("Created tenant %s (%s)", tenant.id, tenant.slug)
        return tenant

    def update_tenant(self, principal_id: int, tenant_id: int, data: TenantUpdate) -> Tenant:
        """
        Apply a partial update to a tenant.

        Raises:
            ForbiddenException: If principal is not an owner or operator
            NotFoundException: If tenant not found
            DuplicateSlugException: If the new slug is taken
        """
        self.policy.require(principal_id, None, Action.ADMIN_MANAGE_USERS)
        tenant = self._get_tenant(tenant_id)

        if data.slug is not None:
            slug = slugify(data.slug)
            if not slug:
                raise ValidationException("Tenant slug cannot be empty")
            existing = self.tenant_repo.get_by_slug(slug)
            if existing and existing.id != tenant.id:
                raise DuplicateSlugException(slug)
            tenant.slug = slug
        if data.name is not None:
            tenant.name = data.name
        if data.kind is not None:
            tenant.kind = data.kind
        if data.categories is not None:
            tenant.categories = list(data.categories)
        if data.goals is not None:
            tenant.goals = dict(data.goals)

        try:
            return self.tenant_repo.update(tenant)
        except IntegrityError:
            self.db.rollback()
            raise DuplicateSlugException(tenant.slug)

    def delete_tenant(self, principal_id: int, tenant_id: int) -> None:
        """
        Delete a tenant with its feeds, grants and observations.

        All-or-nothing: everything is removed in one transaction, and the
        tenant's pending invitations are revoked in the same transaction.
        Holds the tenant's write lock so no merge runs concurrently.

        Raises:
            ForbiddenException: If principal is not an owner or operator
            NotFoundException: If tenant not found
        """
        self.policy.require(principal_id, None, Action.ADMIN_MANAGE_USERS)

        with tenant_locks.hold(tenant_id):
            tenant = self.tenant_repo.get_by_id(tenant_id, lock=True)
            if not tenant:
                raise NotFoundException("Tenant not found")
            slug = tenant.slug
            try:
                observations = self.observation_repo.delete_for_tenant(tenant_id)
                feeds = self.feed_repo.delete_for_tenant(tenant_id)
                grants = self.grant_repo.delete_for_tenant(tenant_id)
                self.invitation_repo.revoke_pending_for_tenant(tenant_id, datetime.now(UTC))
                self.tenant_repo.delete_no_commit(tenant_id)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        tenant_locks.discard(tenant_id)
        logger.warning(
            "Deleted tenant %s (%s): %d observations, %d feeds, %d grants",
            tenant_id,
            slug,
            observations,
            feeds,
            grants,
        )

    # ===== FEEDS =====

    def list_feeds(self, principal_id: int, tenant_id: int) -> list[Feed]:
        """List a tenant's feeds (READ)"""
        self.policy.require(principal_id, tenant_id, Action.READ)
        self._get_tenant(tenant_id)
        return self.feed_repo.get_by_tenant(tenant_id)

    def add_feed(self, principal_id: int, tenant_id: int, data: FeedCreate) -> Feed:
        """
        Attach a data source to a tenant (WRITE).

        Raises:
            ForbiddenException: If principal cannot write to the tenant
            NotFoundException: If tenant not found
        """
        self.policy.require(principal_id, tenant_id, Action.WRITE)
        self._get_tenant(tenant_id)
        feed = Feed(
            tenant_id=tenant_id,
            kind=data.kind,
            locator=data.locator,
            sub_sources=list(data.sub_sources),
        )
        return self.feed_repo.create(feed)

    def update_feed(
        self, principal_id: int, tenant_id: int, feed_id: int, data: FeedUpdate
    ) -> Feed:
        """Change a feed's locator or selected sub-sources (WRITE)"""
        self.policy.require(principal_id, tenant_id, Action.WRITE)
        feed = self._get_feed(tenant_id, feed_id)
        if data.locator is not None:
            feed.locator = data.locator
        if data.sub_sources is not None:
            feed.sub_sources = list(data.sub_sources)
        return self.feed_repo.update(feed)

    def remove_feed(self, principal_id: int, tenant_id: int, feed_id: int) -> None:
        """Detach a feed and delete the observations it produced (WRITE)"""
        self.policy.require(principal_id, tenant_id, Action.WRITE)
        with tenant_locks.hold(tenant_id):
            self._get_feed(tenant_id, feed_id)
            try:
                self.observation_repo.delete_for_feed(feed_id)
                self.feed_repo.delete_no_commit(feed_id)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        logger.info("Removed feed %s from tenant %s", feed_id, tenant_id)

    def _get_tenant(self, tenant_id: int) -> Tenant:
        tenant = self.tenant_repo.get_by_id(tenant_id)
        if not tenant:
            raise NotFoundException("Tenant not found")
        return tenant

    def _get_feed(self, tenant_id: int, feed_id: int) -> Feed:
        feed = self.feed_repo.get_by_id_and_tenant(feed_id, tenant_id)
        if not feed:
            raise NotFoundException("Feed not found")
        return feed
