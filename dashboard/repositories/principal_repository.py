from sqlalchemy.orm import Session
from dashboard.models.principal import Principal


class PrincipalRepository:
    """Repository for Principal model operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_or_create_by_auth_id(self, auth_user_id: str, email: str | None = None) -> Principal:
        """
        Get principal by auth_user_id or create if doesn't exist.

        This is called automatically when a principal makes their first API
        request with a valid JWT. A missing email is filled in from the token;
        an existing one is never overwritten.

        Args:
            auth_user_id: User ID from the JWT 'sub' claim
            email: Optional email claim

        Returns:
            Principal object (either existing or newly created)
        """
        principal = self.get_by_auth_id(auth_user_id)

        if not principal:
            principal = Principal(auth_user_id=auth_user_id, email=email)
            self.db.add(principal)
            self.db.commit()
            self.db.refresh(principal)
        elif email and not principal.email:
            principal.email = email
            self.db.commit()
            self.db.refresh(principal)

        return principal

    def get_by_auth_id(self, auth_user_id: str) -> Principal | None:
        """Get principal by auth_user_id"""
        return self.db.query(Principal).filter(Principal.auth_user_id == auth_user_id).first()

    def get_by_id(self, principal_id: int) -> Principal | None:
        """Get principal by internal ID"""
        return self.db.query(Principal).filter(Principal.id == principal_id).first()
