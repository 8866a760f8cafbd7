"""Bearer token verification for operator endpoints.

Access tokens are HS256 JWTs signed with the configured jwt_secret, the
same tokens the Pepper web app issues at login. The cleanup endpoints only
check that the caller holds a valid token; they are not scoped per user.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TTL = timedelta(days=5)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(
    user_id: str,
    secret: str,
    *,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
    claims: dict[str, Any] | None = None,
) -> str:
    """Sign an access token for operator tooling and tests."""
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = dict(claims or {})
    payload.update(
        {
            "sub": user_id,
            "iat": now,
            "exp": now + (expires_delta or ACCESS_TOKEN_TTL),
        }
    )
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str = "HS256") -> dict:
    """Decode and validate a token.

    Raises:
        jwt.InvalidTokenError: If the signature, format or expiry is invalid.
    """
    return jwt.decode(token, secret, algorithms=[algorithm])


def create_bearer_auth_dependency(
    secret: str,
    algorithm: str = "HS256",
) -> Callable[..., Awaitable[dict]]:
    """Build a FastAPI dependency that requires a valid bearer token.

    Args:
        secret: Signing secret shared with the token issuer.
        algorithm: JWT algorithm.

    Returns:
        Dependency returning the decoded token claims.
    """

    async def require_bearer_token(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    ) -> dict:
        if credentials is None or not credentials.credentials:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authorization token missing",
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            return decode_access_token(credentials.credentials, secret, algorithm)
        except jwt.InvalidTokenError as e:
            logger.info("Rejected bearer token: %s", e)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )

    return require_bearer_token
