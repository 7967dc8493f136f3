import pytest
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from dashboard.core.exceptions import ForbiddenException, ResolutionUnavailable
from dashboard.models.grant import Grant
from dashboard.models.role import Action, Decision, GlobalRole
from dashboard.repositories.grant_repository import GrantRepository
from dashboard.services.access_policy import AccessPolicyEngine
from dashboard.services.identity_service import IdentityResolver
from tests.conftest import make_principal


class TestIdentityResolver:
    """Tests for IdentityResolver.resolve_identity"""

    def test_principal_without_grants_is_member_with_no_tenants(self, db_session, outsider):
        identity = IdentityResolver(db_session).resolve_identity(outsider.id)

        assert identity.global_role == GlobalRole.MEMBER
        assert identity.tenant_grants == ()
        assert identity.tenant_ids == []

    def test_global_grant_sets_global_role(self, db_session, owner, operator):
        resolver = IdentityResolver(db_session)

        assert resolver.resolve_identity(owner.id).global_role == GlobalRole.OWNER
        assert resolver.resolve_identity(operator.id).global_role == GlobalRole.OPERATOR

    def test_tenant_grants_listed_per_tenant(self, db_session, member, tenant, other_tenant):
        db_session.add(Grant(principal_id=member.id, tenant_id=other_tenant.id, role=GlobalRole.OPERATOR))
        db_session.commit()

        identity = IdentityResolver(db_session).resolve_identity(member.id)

        assert identity.global_role == GlobalRole.MEMBER
        assert set(identity.tenant_grants) == {
            (tenant.id, GlobalRole.MEMBER),
            (other_tenant.id, GlobalRole.OPERATOR),
        }
        assert identity.role_for(tenant.id) == GlobalRole.MEMBER
        assert identity.role_for(9999) is None

    def test_store_failure_raises_resolution_unavailable(self, db_session, owner):
        with patch.object(
            GrantRepository,
            "get_global_grant",
            side_effect=OperationalError("SELECT", {}, Exception("database is locked")),
        ):
            with pytest.raises(ResolutionUnavailable):
                IdentityResolver(db_session).resolve_identity(owner.id)

    def test_policy_does_not_decide_when_resolution_fails(self, db_session, owner, tenant):
        engine = AccessPolicyEngine(db_session)
        with patch.object(
            GrantRepository,
            "get_principal_tenant_grants",
            side_effect=OperationalError("SELECT", {}, Exception("connection refused")),
        ):
            with pytest.raises(ResolutionUnavailable):
                engine.authorize(owner.id, tenant.id, Action.READ)


class TestAccessPolicyEngine:
    """Tests for AccessPolicyEngine.authorize"""

    @pytest.mark.parametrize("action", list(Action))
    def test_owner_allowed_everything(self, db_session, owner, tenant, internal_tenant, action):
        engine = AccessPolicyEngine(db_session)

        assert engine.authorize(owner.id, tenant.id, action) == Decision.ALLOW
        assert engine.authorize(owner.id, internal_tenant.id, action) == Decision.ALLOW
        assert engine.authorize(owner.id, None, action) == Decision.ALLOW

    @pytest.mark.parametrize("action", list(Action))
    def test_no_grant_denied_everywhere(self, db_session, outsider, tenant, action):
        engine = AccessPolicyEngine(db_session)

        assert engine.authorize(outsider.id, tenant.id, action) == Decision.DENY
        assert engine.authorize(outsider.id, None, action) == Decision.DENY

    def test_member_reads_own_tenant_only(self, db_session, member, tenant, other_tenant):
        engine = AccessPolicyEngine(db_session)

        assert engine.authorize(member.id, tenant.id, Action.WRITE) == Decision.DENY
        assert engine.authorize(member.id, tenant.id, Action.READ) == Decision.ALLOW
        assert engine.authorize(member.id, other_tenant.id, Action.READ) == Decision.DENY

    def test_member_denied_global_scope(self, db_session, member):
        engine = AccessPolicyEngine(db_session)

        assert engine.authorize(member.id, None, Action.READ) == Decision.DENY

    def test_operator_reads_and_writes_any_tenant(self, db_session, operator, tenant, other_tenant):
        engine = AccessPolicyEngine(db_session)

        for tenant_id in (tenant.id, other_tenant.id):
            assert engine.authorize(operator.id, tenant_id, Action.READ) == Decision.ALLOW
            assert engine.authorize(operator.id, tenant_id, Action.WRITE) == Decision.ALLOW

    def test_operator_cannot_administer_a_tenant(self, db_session, operator, tenant):
        engine = AccessPolicyEngine(db_session)

        assert engine.authorize(operator.id, tenant.id, Action.ADMIN_MANAGE_USERS) == Decision.DENY
        assert engine.authorize(operator.id, tenant.id, Action.ADMIN_MANAGE_BRANDING) == Decision.DENY

    def test_operator_allowed_global_scope(self, db_session, operator):
        engine = AccessPolicyEngine(db_session)

        assert engine.authorize(operator.id, None, Action.ADMIN_MANAGE_USERS) == Decision.ALLOW

    def test_operator_sees_internal_dashboard(self, db_session, operator, internal_tenant):
        engine = AccessPolicyEngine(db_session)

        assert engine.authorize(operator.id, internal_tenant.id, Action.READ) == Decision.ALLOW

    def test_member_grant_on_internal_dashboard_is_ignored(self, db_session, internal_tenant):
        principal = make_principal(db_session, "misconfigured")
        db_session.add(Grant(principal_id=principal.id, tenant_id=internal_tenant.id, role=GlobalRole.MEMBER))
        db_session.commit()

        engine = AccessPolicyEngine(db_session)

        assert engine.authorize(principal.id, internal_tenant.id, Action.READ) == Decision.DENY

    def test_tenant_operator_grant_allows_write_not_admin(self, db_session, tenant):
        principal = make_principal(db_session, "tenant-operator")
        db_session.add(Grant(principal_id=principal.id, tenant_id=tenant.id, role=GlobalRole.OPERATOR))
        db_session.commit()

        engine = AccessPolicyEngine(db_session)

        assert engine.authorize(principal.id, tenant.id, Action.WRITE) == Decision.ALLOW
        assert engine.authorize(principal.id, tenant.id, Action.ADMIN_MANAGE_USERS) == Decision.DENY

    def test_unknown_tenant_denied_for_non_owner(self, db_session, member):
        engine = AccessPolicyEngine(db_session)

        assert engine.authorize(member.id, 424242, Action.READ) == Decision.DENY

    def test_revoked_grant_denied_on_next_check(self, db_session, member, tenant):
        engine = AccessPolicyEngine(db_session)
        assert engine.authorize(member.id, tenant.id, Action.READ) == Decision.ALLOW

        grant = GrantRepository(db_session).get_tenant_grant(member.id, tenant.id)
        GrantRepository(db_session).delete(grant)

        assert engine.authorize(member.id, tenant.id, Action.READ) == Decision.DENY

    def test_require_raises_forbidden_on_deny(self, db_session, member, tenant):
        engine = AccessPolicyEngine(db_session)

        with pytest.raises(ForbiddenException):
            engine.require(member.id, tenant.id, Action.WRITE)

        identity = engine.require(member.id, tenant.id, Action.READ)
        assert identity.principal_id == member.id
