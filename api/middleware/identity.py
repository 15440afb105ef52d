"""Identity resolution for authenticated remote calls."""

import logging
from typing import Annotated, Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from shared.config import get_settings

logger = logging.getLogger(__name__)

# auto_error=False: a missing token is reported by the core as Unauthenticated
security = HTTPBearer(auto_error=False)


def decode_identity_token(token: str) -> dict[str, Any]:
    """
    Verify an identity token issued by the identity provider.

    Raises:
        JWTError: If the signature, expiry or audience is invalid
    """
    settings = get_settings()
    audience = settings.AUTH_JWT_AUDIENCE
    return jwt.decode(
        token,
        settings.AUTH_JWT_SECRET,
        algorithms=[settings.AUTH_JWT_ALGORITHM],
        audience=audience,
        options={"verify_aud": audience is not None},
    )


def email_from_token(token: str | None) -> str | None:
    """Lowercased email claim of a valid token, or None when absent/invalid."""
    if not token:
        return None
    try:
        payload = decode_identity_token(token)
    except JWTError as e:
        logger.warning(f"Rejected identity token: {e}")
        return None

    email = payload.get("email")
    if not isinstance(email, str) or not email.strip():
        logger.warning("Identity token has no email claim")
        return None
    # Slot paths and daily-cap buckets key on the lowercased address
    return email.strip().lower()


async def get_caller_email(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> str | None:
    """
    Dependency resolving the caller's email from the bearer token.

    Never taken from the request body; operations receive it as an
    explicit argument and raise Unauthenticated when it is None.
    """
    return email_from_token(credentials.credentials if credentials else None)


CallerEmail = Annotated[str | None, Depends(get_caller_email)]
