"""
API authentication: X-API-KEY header for the alert API, bearer secret for cron triggers.
"""

import hmac

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from src.config.settings import get_settings

# API key header scheme
api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)
cron_bearer = HTTPBearer(auto_error=False)


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    """
    Verify API key from X-API-KEY header.

    Args:
        api_key: API key from header

    Returns:
        The validated API key

    Raises:
        HTTPException: If API key is missing or invalid
    """
    settings = get_settings()

    # If no API keys configured, allow all requests (dev mode)
    if not settings.api_keys:
        return "dev-mode"

    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-KEY header.",
        )

    valid_keys = [k.strip() for k in settings.api_keys.split(",") if k.strip()]
    if not valid_keys or api_key not in valid_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    return api_key


async def verify_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Security(cron_bearer),
) -> None:
    """
    Verify ``Authorization: Bearer <CRON_SECRET>`` on scheduler calls.

    Only enforced in production; other environments accept any caller.

    Raises:
        HTTPException: If the secret is missing or wrong in production
    """
    settings = get_settings()
    if not settings.is_production:
        return

    if (
        not settings.cron_secret
        or credentials is None
        or not hmac.compare_digest(credentials.credentials, settings.cron_secret)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
