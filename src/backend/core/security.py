"""Security utilities for authentication.

Access tokens are issued by the external identity service and signed
with the shared secret; this service only verifies and decodes them.
"""

from typing import Any

import structlog
from jose import JWTError, jwt

from core.config import settings

logger = structlog.get_logger(__name__)

REQUIRED_CLAIMS = ("id", "role")


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Verify and decode an access token.

    Returns the claims when the signature is valid, the token is not
    expired and it carries the identity claims (``id`` and ``role``);
    otherwise None.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.debug("token_decode_failed", error=str(e))
        return None

    if any(not payload.get(claim) for claim in REQUIRED_CLAIMS):
        logger.debug("token_missing_claims", claims=sorted(payload.keys()))
        return None

    return payload


def create_access_token(data: dict[str, Any]) -> str:
    """Sign a token with the shared secret (used by local tooling and tests)."""
    return jwt.encode(data, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
