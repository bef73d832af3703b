"""JWT validation for operator endpoints.

Tokens are minted by the identity provider and signed HS256 with the shared
JWT_SECRET_KEY; this service only verifies them. The subject claim is the
operator identity recorded on fee actions.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from concierge_api.config import Settings, get_settings

logger = logging.getLogger("concierge-auth")

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 30

# Operator identity used when auth is bypassed in development
SYSTEM_OPERATOR = "system"


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # Operator ID
    exp: datetime
    iat: datetime | None = None


# Security scheme for Swagger UI
security = HTTPBearer(auto_error=False)


def create_access_token(
    operator_id: str, secret_key: str, expires_delta: timedelta | None = None
) -> str:
    """Create an access token for an operator.

    Used by local tooling and tests; production tokens come from the
    identity provider.

    Args:
        operator_id: The operator's identity (JWT subject).
        secret_key: Shared HS256 secret.
        expires_delta: Optional custom expiration time.

    Returns:
        Encoded JWT access token.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    now = datetime.now(timezone.utc)
    to_encode: dict[str, Any] = {
        "sub": operator_id,
        "exp": now + expires_delta,
        "iat": now,
    }
    return jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)


def decode_token(token: str, secret_key: str) -> TokenPayload:
    """Decode and validate a JWT token.

    Raises:
        HTTPException: If token is invalid or expired.
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[ALGORITHM])
        if not payload.get("sub"):
            raise JWTError("Missing subject")
        return TokenPayload(
            sub=str(payload["sub"]),
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=(
                datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
                if "iat" in payload
                else None
            ),
        )
    except (JWTError, KeyError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {e!s}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def require_operator(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> str:
    """FastAPI dependency returning the authenticated operator id.

    Usage:
        @router.get("/dashboard/metrics")
        async def metrics(operator: str = Depends(require_operator)):
            ...

    Raises:
        HTTPException: 401 if not authenticated or token invalid.
    """
    if settings.skip_auth and settings.is_development:
        logger.warning("SKIP_AUTH enabled - bypassing operator authentication")
        return SYSTEM_OPERATOR

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return decode_token(credentials.credentials, settings.jwt_secret_key).sub


async def require_admin(
    operator: str = Depends(require_operator),
    settings: Settings = Depends(get_settings),
) -> str:
    """FastAPI dependency that additionally checks the admin allow-list.

    Raises:
        HTTPException: 403 if the operator is not an admin.
    """
    if operator == SYSTEM_OPERATOR and settings.skip_auth and settings.is_development:
        return operator

    if not settings.admin_user_ids:
        logger.warning("ADMIN_USER_IDS not configured - allowing all authenticated operators")
        return operator

    if operator not in settings.admin_user_ids:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return operator
