import pytest

from dashboard.core.exceptions import (
    ForbiddenException,
    LastOwnerRevocationRejected,
    NotFoundException,
    ValidationException,
)
from dashboard.models.grant import Grant
from dashboard.models.role import GlobalRole
from dashboard.repositories.grant_repository import GrantRepository
from dashboard.services.grant_service import GrantService
from tests.conftest import make_principal


class TestLastOwnerInvariant:
    """At least one global OWNER grant must exist at all times"""

    def test_cannot_revoke_only_owner(self, db_session, owner):
        service = GrantService(db_session)

        with pytest.raises(LastOwnerRevocationRejected):
            service.revoke_global_grant(owner.id, owner.id)

        assert GrantRepository(db_session).get_global_grant(owner.id).role == GlobalRole.OWNER

    def test_cannot_downgrade_only_owner(self, db_session, owner):
        service = GrantService(db_session)

        with pytest.raises(LastOwnerRevocationRejected):
            service.set_global_role(owner.id, owner.id, GlobalRole.OPERATOR)

        assert GrantRepository(db_session).get_global_grant(owner.id).role == GlobalRole.OWNER

    def test_downgrade_allowed_with_two_owners(self, db_session, owner):
        second = make_principal(db_session, "owner-2", role=GlobalRole.OWNER)
        service = GrantService(db_session)

        grant = service.set_global_role(owner.id, second.id, GlobalRole.OPERATOR)

        assert grant.role == GlobalRole.OPERATOR
        assert len(GrantRepository(db_session).get_global_owner_grants()) == 1

    def test_second_downgrade_rejected_after_first(self, db_session, owner):
        second = make_principal(db_session, "owner-2", role=GlobalRole.OWNER)
        service = GrantService(db_session)
        service.set_global_role(owner.id, second.id, GlobalRole.OPERATOR)

        with pytest.raises(LastOwnerRevocationRejected):
            service.set_global_role(owner.id, owner.id, GlobalRole.MEMBER)

    def test_upsert_grant_cannot_downgrade_last_owner(self, db_session, owner):
        with pytest.raises(LastOwnerRevocationRejected):
            GrantService(db_session).upsert_grant(owner.id, None, GlobalRole.MEMBER)


class TestGlobalRoles:
    """Tests for set_global_role / revoke_global_grant"""

    def test_owner_promotes_member_to_operator(self, db_session, owner, outsider):
        grant = GrantService(db_session).set_global_role(owner.id, outsider.id, GlobalRole.OPERATOR)

        assert grant.tenant_id is None
        assert grant.role == GlobalRole.OPERATOR

    def test_set_global_role_updates_instead_of_duplicating(self, db_session, owner, operator):
        service = GrantService(db_session)

        service.set_global_role(owner.id, operator.id, GlobalRole.MEMBER)
        service.set_global_role(owner.id, operator.id, GlobalRole.OPERATOR)

        grants = db_session.query(Grant).filter(Grant.principal_id == operator.id).all()
        assert len(grants) == 1
        assert grants[0].role == GlobalRole.OPERATOR

    def test_operator_cannot_grant_owner(self, db_session, owner, operator, outsider):
        with pytest.raises(ForbiddenException):
            GrantService(db_session).set_global_role(operator.id, outsider.id, GlobalRole.OWNER)

    def test_operator_cannot_demote_owner(self, db_session, owner, operator):
        make_principal(db_session, "owner-2", role=GlobalRole.OWNER)

        with pytest.raises(ForbiddenException):
            GrantService(db_session).set_global_role(operator.id, owner.id, GlobalRole.MEMBER)

    def test_member_cannot_change_global_roles(self, db_session, member, outsider):
        with pytest.raises(ForbiddenException):
            GrantService(db_session).set_global_role(member.id, outsider.id, GlobalRole.OPERATOR)

    def test_revoke_global_grant_falls_back_to_member(self, db_session, owner, operator):
        GrantService(db_session).revoke_global_grant(owner.id, operator.id)

        assert GrantRepository(db_session).get_global_grant(operator.id) is None

    def test_revoke_missing_global_grant(self, db_session, owner, outsider):
        with pytest.raises(NotFoundException):
            GrantService(db_session).revoke_global_grant(owner.id, outsider.id)


class TestTenantGrants:
    """Tests for tenant-scoped grant management"""

    def test_owner_grants_member_access(self, db_session, owner, outsider, tenant):
        grant = GrantService(db_session).set_tenant_grant(owner.id, outsider.id, tenant.id, GlobalRole.MEMBER)

        assert grant.tenant_id == tenant.id
        assert grant.role == GlobalRole.MEMBER

    def test_existing_grant_role_replaced(self, db_session, owner, member, tenant):
        service = GrantService(db_session)

        grant = service.set_tenant_grant(owner.id, member.id, tenant.id, GlobalRole.OPERATOR)

        assert grant.role == GlobalRole.OPERATOR
        assert len(GrantRepository(db_session).get_tenant_grants(tenant.id)) == 1

    def test_owner_role_rejected_per_tenant(self, db_session, owner, outsider, tenant):
        with pytest.raises(ValidationException):
            GrantService(db_session).set_tenant_grant(owner.id, outsider.id, tenant.id, GlobalRole.OWNER)

    def test_operator_cannot_manage_tenant_users(self, db_session, operator, outsider, tenant):
        with pytest.raises(ForbiddenException):
            GrantService(db_session).set_tenant_grant(operator.id, outsider.id, tenant.id, GlobalRole.MEMBER)

    def test_grant_unknown_principal(self, db_session, owner, tenant):
        with pytest.raises(NotFoundException):
            GrantService(db_session).set_tenant_grant(owner.id, 9999, tenant.id, GlobalRole.MEMBER)

    def test_revoke_tenant_grant(self, db_session, owner, member, tenant):
        service = GrantService(db_session)

        service.revoke_tenant_grant(owner.id, member.id, tenant.id)

        assert GrantRepository(db_session).get_tenant_grant(member.id, tenant.id) is None

    def test_list_tenant_grants(self, db_session, owner, member, tenant):
        grants = GrantService(db_session).list_tenant_grants(owner.id, tenant.id)

        assert [(g.principal_id, g.role) for g in grants] == [(member.id, GlobalRole.MEMBER)]


class TestBootstrap:
    def test_bootstrap_creates_first_owner(self, db_session):
        grant = GrantService(db_session).bootstrap_owner("founder", "founder@example.com")

        assert grant is not None
        assert grant.role == GlobalRole.OWNER
        assert grant.tenant_id is None

    def test_bootstrap_noop_when_owner_exists(self, db_session, owner):
        assert GrantService(db_session).bootstrap_owner("someone-else") is None
        assert len(GrantRepository(db_session).get_global_owner_grants()) == 1
