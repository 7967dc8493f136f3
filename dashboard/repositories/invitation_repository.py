"""Repository for Invitation model operations."""

from datetime import datetime
from sqlalchemy.orm import Session
from dashboard.models.invitation import Invitation


class InvitationRepository:
    """Repository for Invitation model operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, invitation_id: int) -> Invitation | None:
        return self.db.query(Invitation).filter(Invitation.id == invitation_id).first()

    def get_by_token(self, token: str, lock: bool = False) -> Invitation | None:
        """
        Get invitation by bearer token.

        Args:
            token: Invitation token
            lock: Row-lock the invitation until commit, so two acceptances
                of the same token serialize

        Returns:
            Invitation object or None if not found
        """
        query = self.db.query(Invitation).filter(Invitation.token == token)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get_unused(self, email: str, tenant_id: int | None) -> list[Invitation]:
        """Unused invitations for an (email, tenant) pair, newest first"""
        query = self.db.query(Invitation).filter(
            Invitation.email == email, Invitation.used.is_(False)
        )
        if tenant_id is None:
            query = query.filter(Invitation.tenant_id.is_(None))
        else:
            query = query.filter(Invitation.tenant_id == tenant_id)
        return query.order_by(Invitation.id.desc()).all()

    def get_for_scope(self, tenant_id: int | None) -> list[Invitation]:
        """All invitations of a tenant, or all global invitations when tenant_id is None"""
        query = self.db.query(Invitation)
        if tenant_id is None:
            query = query.filter(Invitation.tenant_id.is_(None))
        else:
            query = query.filter(Invitation.tenant_id == tenant_id)
        return query.order_by(Invitation.id.desc()).all()

    def create(self, invitation: Invitation) -> Invitation:
        self.db.add(invitation)
        self.db.commit()
        self.db.refresh(invitation)
        return invitation

    def update(self, invitation: Invitation) -> Invitation:
        self.db.commit()
        self.db.refresh(invitation)
        return invitation

    def revoke_pending_for_tenant(self, tenant_id: int, now: datetime) -> int:
        """Mark every unused invitation of a tenant revoked, without committing"""
        return (
            self.db.query(Invitation)
            .filter(Invitation.tenant_id == tenant_id, Invitation.used.is_(False))
            .update(
                {Invitation.used: True, Invitation.revoked_at: now},
                synchronize_session=False,
            )
        )
