"""Authentication dependencies."""
from typing import Any, Dict, Optional
from fastapi import Depends, Header
from jose import JWTError
import logging

from errors import ErrorCode, StorefrontError
from models import MemberRole
from monitoring import auth_failures_counter, auth_attempts_counter
from security import ACCESS_TOKEN_TYPE, decode_token

logger = logging.getLogger(__name__)


def _reject(reason: str) -> StorefrontError:
    auth_failures_counter.add(1, {"reason": reason})
    logger.warning("Authentication failed", extra={"reason": reason})
    return StorefrontError(ErrorCode.USER_NOT_AUTHORIZED)


def verify_token(authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    """
    Verify the bearer access token.

    Args:
        authorization: Authorization header value

    Returns:
        Decoded token claims

    Raises:
        StorefrontError: USER_NOT_AUTHORIZED for any missing, malformed,
            expired or non-access token
    """
    auth_attempts_counter.add(1, {"type": "bearer_token"})

    if authorization is None:
        raise _reject("missing_header")

    # Extract token (Bearer <token>)
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _reject("invalid_format")

    try:
        claims = decode_token(parts[1])
    except JWTError:
        raise _reject("invalid_token")

    if claims.get("type") != ACCESS_TOKEN_TYPE:
        raise _reject("wrong_token_type")

    return claims


def get_current_member_id(claims: Dict[str, Any] = Depends(verify_token)) -> int:
    """
    Resolve the authenticated member id from token claims.

    Raises:
        StorefrontError: USER_NOT_AUTHORIZED if the subject is not a member id
    """
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise _reject("invalid_subject")


def require_admin(claims: Dict[str, Any] = Depends(verify_token)) -> int:
    """Resolve the authenticated member id and require the admin role."""
    if claims.get("role") != MemberRole.ADMIN.value:
        raise _reject("not_admin")
    return get_current_member_id(claims)
