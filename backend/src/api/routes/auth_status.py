"""
Provider connection status API.

Reports whether Google and HubSpot are usable for the current user,
refreshing expired OAuth tokens on the way. Token values are never
returned.

SECURITY: All routes require an authenticated user on the request.
"""

import logging

from fastapi import APIRouter, Depends

from src.api.dependencies.services import get_credential_manager, get_current_user_id
from src.api.schemas.auth_status import AuthStatusResponse, to_provider_status
from src.credentials.manager import CredentialLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get(
    "/status",
    response_model=AuthStatusResponse,
)
async def auth_status(
    user_id: str = Depends(get_current_user_id),
    manager: CredentialLifecycleManager = Depends(get_credential_manager),
):
    """Connection status per provider for the authenticated user."""
    statuses = await manager.connection_status(user_id)

    logger.info(
        "Reported connection status",
        extra={
            "user_id": user_id,
            "connected": [s.provider for s in statuses if s.connected],
        },
    )

    return AuthStatusResponse(providers=[to_provider_status(s) for s in statuses])
