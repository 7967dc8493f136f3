from datetime import datetime, timedelta, UTC

import pytest

from dashboard.core.exceptions import (
    ForbiddenException,
    InvitationAlreadyUsed,
    InvitationExpired,
    InvitationNotFound,
    InvitationRevoked,
    NotFoundException,
    ValidationException,
)
from dashboard.models.grant import Grant
from dashboard.models.invitation import InvitationStatus
from dashboard.models.role import GlobalRole
from dashboard.repositories.grant_repository import GrantRepository
from dashboard.schemas.invitation_schemas import InvitationCreate
from dashboard.services.invitation_service import InvitationService, generate_invitation_token
from tests.conftest import make_principal


@pytest.fixture
def invitation(db_session, owner, tenant):
    """Pending MEMBER invitation to `tenant`"""
    return InvitationService(db_session).create_invitation(
        owner.id, InvitationCreate(email="New.Analyst@Example.com", tenant_id=tenant.id)
    )


class TestCreateInvitation:
    """Tests for issuing invitations"""

    def test_owner_invites_to_tenant(self, invitation, owner, tenant):
        assert invitation.email == "new.analyst@example.com"
        assert invitation.tenant_id == tenant.id
        assert invitation.role == GlobalRole.MEMBER
        assert invitation.invited_by == owner.id
        assert invitation.status() == InvitationStatus.PENDING

    def test_expires_after_seven_days(self, invitation):
        remaining = invitation.expires_at.replace(tzinfo=UTC) - datetime.now(UTC)

        assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)

    def test_custom_ttl(self, db_session, owner, tenant):
        invitation = InvitationService(db_session, ttl=timedelta(hours=1)).create_invitation(
            owner.id, InvitationCreate(email="short@example.com", tenant_id=tenant.id)
        )

        assert invitation.expires_at.replace(tzinfo=UTC) - datetime.now(UTC) <= timedelta(hours=1)

    def test_reinvite_reissues_pending_invitation(self, db_session, owner, tenant, invitation):
        first_id, first_token = invitation.id, invitation.token

        reissued = InvitationService(db_session).create_invitation(
            owner.id, InvitationCreate(email="new.analyst@example.com", tenant_id=tenant.id)
        )

        assert reissued.id == first_id
        assert reissued.token != first_token

    def test_tokens_are_unique_and_long(self):
        tokens = {generate_invitation_token() for _ in range(100)}

        assert len(tokens) == 100
        assert all(len(token) >= 40 for token in tokens)

    def test_owner_role_rejected_for_tenant(self, db_session, owner, tenant):
        with pytest.raises(ValidationException):
            InvitationService(db_session).create_invitation(
                owner.id,
                InvitationCreate(email="boss@example.com", tenant_id=tenant.id, role=GlobalRole.OWNER),
            )

    def test_unknown_tenant(self, db_session, owner):
        with pytest.raises(NotFoundException):
            InvitationService(db_session).create_invitation(
                owner.id, InvitationCreate(email="ghost@example.com", tenant_id=9999)
            )

    def test_member_cannot_invite(self, db_session, member, tenant):
        with pytest.raises(ForbiddenException):
            InvitationService(db_session).create_invitation(
                member.id, InvitationCreate(email="friend@example.com", tenant_id=tenant.id)
            )

    def test_operator_cannot_invite_to_tenant(self, db_session, operator, tenant):
        with pytest.raises(ForbiddenException):
            InvitationService(db_session).create_invitation(
                operator.id, InvitationCreate(email="client@example.com", tenant_id=tenant.id)
            )

    def test_operator_invites_global_member(self, db_session, operator):
        invitation = InvitationService(db_session).create_invitation(
            operator.id, InvitationCreate(email="colleague@example.com", role=GlobalRole.OPERATOR)
        )

        assert invitation.tenant_id is None
        assert invitation.role == GlobalRole.OPERATOR

    def test_only_owner_can_invite_owner(self, db_session, operator):
        with pytest.raises(ForbiddenException):
            InvitationService(db_session).create_invitation(
                operator.id, InvitationCreate(email="partner@example.com", role=GlobalRole.OWNER)
            )

    def test_list_invitations(self, db_session, owner, tenant, invitation):
        invitations = InvitationService(db_session).list_invitations(owner.id, tenant.id)

        assert [i.id for i in invitations] == [invitation.id]
        assert InvitationService(db_session).list_invitations(owner.id) == []


class TestAcceptInvitation:
    """Acceptance activates exactly one grant, exactly once"""

    def test_accept_creates_grant(self, db_session, outsider, tenant, invitation):
        grant = InvitationService(db_session).accept_invitation(invitation.token, outsider.id)

        assert grant.principal_id == outsider.id
        assert grant.tenant_id == tenant.id
        assert grant.role == GlobalRole.MEMBER

        db_session.refresh(invitation)
        assert invitation.used is True
        assert invitation.accepted_by == outsider.id
        assert invitation.status() == InvitationStatus.ACCEPTED

    def test_second_accept_rejected(self, db_session, outsider, invitation):
        service = InvitationService(db_session)
        service.accept_invitation(invitation.token, outsider.id)

        with pytest.raises(InvitationAlreadyUsed):
            service.accept_invitation(invitation.token, outsider.id)

        assert db_session.query(Grant).filter(Grant.principal_id == outsider.id).count() == 1
        assert GrantRepository(db_session).get_principal_tenant_grants(outsider.id)[0].role == GlobalRole.MEMBER

    def test_used_token_cannot_be_replayed_by_someone_else(self, db_session, owner, outsider, invitation):
        service = InvitationService(db_session)
        service.accept_invitation(invitation.token, outsider.id)
        intruder = make_principal(db_session, "intruder-1")

        with pytest.raises(InvitationAlreadyUsed):
            service.accept_invitation(invitation.token, intruder.id)

        assert db_session.query(Grant).filter(Grant.principal_id == intruder.id).count() == 0

    def test_expired_invitation(self, db_session, outsider, invitation):
        invitation.expires_at = datetime.now(UTC) - timedelta(seconds=1)
        db_session.commit()

        with pytest.raises(InvitationExpired):
            InvitationService(db_session).accept_invitation(invitation.token, outsider.id)

        assert db_session.query(Grant).filter(Grant.principal_id == outsider.id).count() == 0
        assert invitation.status() == InvitationStatus.EXPIRED

    def test_unknown_token(self, db_session, outsider):
        with pytest.raises(InvitationNotFound):
            InvitationService(db_session).accept_invitation("no-such-token", outsider.id)

    def test_accept_replaces_existing_tenant_role(self, db_session, owner, member, tenant):
        service = InvitationService(db_session)
        upgrade = service.create_invitation(
            owner.id,
            InvitationCreate(email="member-1@example.com", tenant_id=tenant.id, role=GlobalRole.OPERATOR),
        )

        grant = service.accept_invitation(upgrade.token, member.id)

        assert grant.role == GlobalRole.OPERATOR
        assert len(GrantRepository(db_session).get_principal_tenant_grants(member.id)) == 1

    def test_accept_global_owner_invitation(self, db_session, owner, outsider):
        service = InvitationService(db_session)
        invitation = service.create_invitation(
            owner.id, InvitationCreate(email="cofounder@example.com", role=GlobalRole.OWNER)
        )

        grant = service.accept_invitation(invitation.token, outsider.id)

        assert grant.tenant_id is None
        assert grant.role == GlobalRole.OWNER
        assert len(GrantRepository(db_session).get_global_owner_grants()) == 2


class TestRevokeInvitation:
    """Revoked invitations can never be accepted"""

    def test_revoke_then_accept(self, db_session, owner, outsider, invitation):
        service = InvitationService(db_session)
        revoked = service.revoke_invitation(owner.id, invitation.id)

        assert revoked.status() == InvitationStatus.REVOKED

        with pytest.raises(InvitationRevoked):
            service.accept_invitation(invitation.token, outsider.id)

        assert db_session.query(Grant).filter(Grant.principal_id == outsider.id).count() == 0

    def test_revoked_is_a_kind_of_already_used(self):
        assert issubclass(InvitationRevoked, InvitationAlreadyUsed)

    def test_revoke_accepted_invitation(self, db_session, owner, outsider, invitation):
        service = InvitationService(db_session)
        service.accept_invitation(invitation.token, outsider.id)

        with pytest.raises(InvitationAlreadyUsed):
            service.revoke_invitation(owner.id, invitation.id)

    def test_revoke_twice(self, db_session, owner, invitation):
        service = InvitationService(db_session)
        service.revoke_invitation(owner.id, invitation.id)

        with pytest.raises(InvitationRevoked):
            service.revoke_invitation(owner.id, invitation.id)

    def test_member_cannot_revoke(self, db_session, member, invitation):
        with pytest.raises(ForbiddenException):
            InvitationService(db_session).revoke_invitation(member.id, invitation.id)

    def test_revoke_unknown(self, db_session, owner):
        with pytest.raises(NotFoundException):
            InvitationService(db_session).revoke_invitation(owner.id, 9999)
