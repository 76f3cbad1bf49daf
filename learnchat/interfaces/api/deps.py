"""FastAPI dependencies: bearer-token auth and the admin guard."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from learnchat.application.services.auth_service import decode_access_token
from learnchat.domain.repositories.entity_repository import EntityRepository
from learnchat.domain.schemas.user import UserRead
from learnchat.interfaces.deps import get_repository

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    repo: EntityRepository = Depends(get_repository),
) -> UserRead:
    """Extract and validate the current user from JWT token."""
    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    # Fresh read: the user may have been deleted by another actor
    user = repo.get_user(user_id, fresh=True)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    return user.public()


def require_admin(user: UserRead = Depends(get_current_user)) -> UserRead:
    """Require admin role."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators can access this resource",
        )
    return user
