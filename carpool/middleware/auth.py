from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from carpool.config import get_settings

settings = get_settings()
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, role: Optional[str] = None, expires_minutes: Optional[int] = None) -> str:
    """Sign a JWT for `user_id` with the configured secret."""
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    claims = {"sub": user_id, "exp": expire}
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """Decode and validate the JWT Bearer token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return payload


async def get_current_user_id(token_data: dict = Depends(get_current_user)) -> str:
    return token_data["sub"]


async def get_current_rider(token_data: dict = Depends(get_current_user)) -> str:
    """Any account can ride; a token scoped to "driver" only cannot."""
    if token_data.get("role") == "driver":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Rider token required")
    return token_data["sub"]


async def get_current_driver(token_data: dict = Depends(get_current_user)) -> str:
    if token_data.get("role") == "rider":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Driver token required")
    return token_data["sub"]
