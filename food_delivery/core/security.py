"""
Authentication Collaborator

Resolves caller identity from a bearer token and checks the shared admin key.
Token issuance lives in the account service; this module only decodes.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Header

from food_delivery.core.config import get_settings
from food_delivery.core.errors import Unauthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller."""
    user_id: int
    role: str = "user"


def decode_identity(authorization: Optional[str]) -> Optional[Identity]:
    """
    Decode an ``Authorization: Bearer <token>`` header value.

    Returns None for a missing header, a non-bearer scheme, a bad signature,
    an expired token or a payload without an integer ``id``.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None

    token = authorization[len("Bearer "):].strip()
    if not token:
        return None

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.warning(f"Token verification failed: {e}")
        return None

    user_id = payload.get("id")
    if isinstance(user_id, bool):
        return None
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None

    return Identity(user_id=user_id, role=str(payload.get("role") or "user"))


def issue_token(user_id: int, role: str = "user", email: Optional[str] = None) -> str:
    """Sign a token in the account service's format. Used by scripts and tests."""
    settings = get_settings()
    payload = {"id": user_id, "role": role}
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def admin_key_matches(api_key: Optional[str]) -> bool:
    if api_key is None:
        return False
    expected = get_settings().admin_api_key.encode("utf-8")
    return hmac.compare_digest(api_key.encode("utf-8"), expected)


# =============================================================================
# FASTAPI DEPENDENCIES
# =============================================================================

async def require_identity(
    authorization: Optional[str] = Header(None),
) -> Identity:
    identity = decode_identity(authorization)
    if identity is None:
        raise Unauthorized("Authorization required")
    return identity


async def require_admin_key(
    x_admin_api_key: Optional[str] = Header(None, alias="X-Admin-API-Key"),
) -> None:
    if not admin_key_matches(x_admin_api_key):
        raise Unauthorized("Invalid API key")
