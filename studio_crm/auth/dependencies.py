from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from studio_crm.auth.schemas import CurrentUser
from studio_crm.core.config import settings


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Resolve the caller's (user, organization) pair from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise credentials_exception

    user_id_str = payload.get("user_id") or payload.get("sub")
    organization_id_str = payload.get("organization_id")
    if not user_id_str or not organization_id_str:
        raise credentials_exception

    try:
        user_id = UUID(user_id_str)
        organization_id = UUID(organization_id_str)
    except ValueError:
        raise credentials_exception

    return CurrentUser(id=user_id, organization_id=organization_id)


async def require_organization_access(
    organization_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Dependency: the path organization must be the caller's.
    Answers 404 rather than 403 so foreign organizations look the same as missing ones.
    """
    if current_user.organization_id != organization_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found",
        )
    return current_user
