"""
Authentication

Bearer token check plus caller identity headers. The account service in
front of this API resolves the user and forwards X-User-Id / X-User-Role.
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from scheduling_engine.config import get_settings
from scheduling_engine.services.authorization import Actor, Role

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(code: str, message: str, details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": code,
                "message": message,
                "details": details,
            }
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_token(credentials: Optional[HTTPAuthorizationCredentials]) -> bool:
    """
    Verify bearer token.

    Returns:
        True if valid, raises HTTPException otherwise
    """
    if credentials is None:
        raise _unauthorized(
            "AUTH_001", "Authorization header missing", "Please provide a valid bearer token"
        )

    token = credentials.credentials
    if token != get_settings().api_token:
        logger.warning(f"Invalid token attempt: {token[:10]}...")
        raise _unauthorized(
            "AUTH_002", "Invalid or expired token", "The provided token is not valid"
        )

    return True


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Actor:
    """Resolve the calling user from the token and identity headers"""
    verify_token(credentials)

    if not x_user_id or not x_user_role:
        raise _unauthorized(
            "AUTH_003", "Caller identity missing", "X-User-Id and X-User-Role headers are required"
        )
    try:
        role = Role(x_user_role)
    except ValueError:
        raise _unauthorized(
            "AUTH_004", "Unknown role", f"Role must be one of: {', '.join(r.value for r in Role)}"
        )

    return Actor(user_id=x_user_id, role=role)
