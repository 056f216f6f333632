"""FastAPI dependencies for admin authentication."""

import secrets

from fastapi import Header

from elportal.config import settings
from elportal.exceptions import ConfigurationError, UnauthorizedError


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract the token from an Authorization header.

    Args:
        authorization: Authorization header value

    Returns:
        Token from a ``Bearer <token>`` header

    Raises:
        UnauthorizedError: If header is missing or malformed
    """
    if not authorization:
        raise UnauthorizedError(
            message="Missing Authorization header",
            details={"hint": "Include 'Authorization: Bearer <admin_secret>'"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedError(
            message="Invalid Authorization header format",
            details={"hint": "Use format 'Authorization: Bearer <admin_secret>'"},
        )

    return parts[1]


async def require_admin(authorization: str | None = Header(None)) -> None:
    """
    Require the configured admin secret as a bearer token.

    Runs before any store access.

    Raises:
        ConfigurationError: If ADMIN_SECRET is not configured (500)
        UnauthorizedError: If the token is missing or does not match (401)
    """
    admin_secret = settings.admin_secret
    if not admin_secret:
        raise ConfigurationError(
            message="Admin authentication is not configured",
            setting="ADMIN_SECRET",
        )

    token = get_bearer_token(authorization)
    if not secrets.compare_digest(token.encode(), admin_secret.encode()):
        raise UnauthorizedError(message="Invalid admin token")
