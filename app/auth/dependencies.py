from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from app.auth.schemas import CurrentAdmin
from app.core.config import settings


# Tokens are issued out of band (app.scripts.issue_super_admin_token); tokenUrl only feeds the docs UI.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


async def get_current_admin(token: str = Depends(oauth2_scheme)) -> CurrentAdmin:
    """Decode the bearer token into the caller's identity."""
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

    email = payload.get("email")
    subject = payload.get("sub") or email
    if not email or not subject:
        raise credentials_exception

    return CurrentAdmin(subject=str(subject), email=str(email))


async def require_super_admin(
    current_admin: CurrentAdmin = Depends(get_current_admin),
) -> CurrentAdmin:
    """Only SUPER_ADMIN_EMAIL may use the admin API."""
    if not settings.super_admin_email:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Super admin email not configured",
        )
    if current_admin.email.strip().lower() != settings.super_admin_email.strip().lower():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Super admin access required.",
        )
    return current_admin
