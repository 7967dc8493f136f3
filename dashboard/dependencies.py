from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from dashboard.core.security import extract_identity
from dashboard.core.exceptions import UnauthorizedException
from dashboard.database import get_db
from dashboard.repositories.principal_repository import PrincipalRepository
from dashboard.models.principal import Principal

security = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> Principal:
    """
    FastAPI dependency to validate JWT and get/create the principal.

    Flow:
    1. Extract token from Authorization: Bearer <token>
    2. Validate JWT using shared SECRET_KEY
    3. Extract auth_user_id from 'sub' claim (and 'email' when present)
    4. Get or auto-create Principal record
    5. Return Principal for use in endpoints

    Roles are not read here: every service call re-resolves them through
    the access policy engine, so revocations apply on the next request.

    Raises:
        HTTPException 401: If token missing, invalid or expired
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        auth_user_id, email = extract_identity(credentials.credentials)
    except UnauthorizedException as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    principal_repo = PrincipalRepository(db)
    return principal_repo.get_or_create_by_auth_id(auth_user_id, email)
