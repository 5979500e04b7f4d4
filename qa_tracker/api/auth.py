"""
API authentication using the X-API-KEY header, and identity resolution
from the X-User-Id header.
"""

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from qa_tracker.api.dependencies import get_tracker
from qa_tracker.config.settings import get_settings
from qa_tracker.identity.schemas import IdentityContext
from qa_tracker.services.container import QATracker

# API key header scheme
api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)

# Acting user, resolved against the users collection
user_id_header = APIKeyHeader(name="X-User-Id", auto_error=False)


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


async def get_identity(
    user_id: str | None = Security(user_id_header),
    api_key: str = Depends(verify_api_key),
    tracker: QATracker = Depends(get_tracker),
) -> IdentityContext:
    """
    Resolve the acting identity from the X-User-Id header.

    Unknown, inactive or missing users resolve to an identity without a
    role, which every permission check rejects.
    """
    return await tracker.gate.resolve(user_id)


async def require_known_user(
    identity: IdentityContext = Depends(get_identity),
) -> IdentityContext:
    """Reject requests whose X-User-Id does not resolve to an active user."""
    if not identity.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permission denied: a known, active user is required",
        )
    return identity
