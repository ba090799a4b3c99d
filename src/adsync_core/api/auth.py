"""FastAPI authentication dependencies for cron-triggered sync routes."""
import hmac
import os
from typing import Annotated

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer


# Scheduler sends Authorization: Bearer <CRON_SECRET>
bearer_scheme = HTTPBearer(auto_error=False)


async def require_cron_secret(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Security(bearer_scheme)
    ] = None,
) -> str:
    """Validate the shared cron secret from the Authorization header.

    Args:
        credentials: Bearer credentials (optional)

    Returns:
        Validated secret

    Raises:
        HTTPException: 401 if the bearer token is missing or invalid
    """
    expected_secret = os.getenv("CRON_SECRET")

    if not expected_secret:
        raise RuntimeError("CRON_SECRET environment variable not configured")

    # Return 401 for both missing AND invalid secrets
    provided = credentials.credentials if credentials else ""
    if not provided or not hmac.compare_digest(
        provided.encode(), expected_secret.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return provided
