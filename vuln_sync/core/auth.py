"""
API key guard for the admin and purl routes

Callers send one of the configured API_KEYS as a bearer token. Health and
root endpoints stay public.
"""

from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import logging

from .config import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _masked(key: str) -> str:
    return key[:4] + "***"


def check_admin_key(token: Optional[str]) -> dict:
    """
    Match a bearer token against the configured admin keys

    Returns:
        dict: Masked key of the authorized operator

    Raises:
        HTTPException: 401 when the token is absent or unknown
    """
    if not token:
        logger.warning("Admin request without bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if token not in settings.API_KEYS:
        logger.warning(f"Admin request rejected for key {_masked(token)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {"operator": _masked(token)}


async def require_api_key(credentials: HTTPAuthorizationCredentials = Security(bearer_scheme)) -> dict:
    """Route dependency guarding admin operations"""
    return check_admin_key(credentials.credentials if credentials else None)
