import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError

from sessionguard.auth.dependencies import (
    extract_token,
    get_revocation_service,
    require_role,
    security,
)
from sessionguard.auth.schemas import CurrentToken, RevokeAllResponse
from sessionguard.auth.service import decode_access_token, token_expiry
from sessionguard.config import settings as app_settings
from sessionguard.revocation.service import RevocationService

logger = logging.getLogger(__name__)

router = APIRouter()

ADMIN_ROLES = ("admin", "super_admin")


def _clear_auth_cookie(response: Response) -> None:
    """Clear the auth cookie."""
    response.delete_cookie(
        key=app_settings.cookie_name,
        path="/",
        domain=app_settings.cookie_domain,
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Request,
    response: Response,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    revocation: RevocationService = Depends(get_revocation_service),
):
    """Revoke the current JWT and clear the auth cookie."""
    token = extract_token(request, credentials)
    if token:
        try:
            payload = decode_access_token(token)
        except (JWTError, ValueError):
            payload = None  # Token may already be invalid — still clear the cookie
        if payload and payload.get("sub") and payload.get("exp"):
            await revocation.revoke(token, str(payload["sub"]), token_expiry(payload))
    _clear_auth_cookie(response)


@router.post("/users/{user_id}/revoke-all", response_model=RevokeAllResponse)
async def revoke_all_user_tokens(
    user_id: str,
    current: CurrentToken = Depends(require_role(*ADMIN_ROLES)),
    revocation: RevocationService = Depends(get_revocation_service),
):
    """Lock a user out after a suspected credential theft."""
    if not user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="user_id inválido",
        )
    count = await revocation.revoke_all_for_user(user_id)
    logger.warning(
        "Revogação em massa solicitada: user_id=%s, por=%s, tokens=%d",
        user_id,
        current.subject,
        count,
    )
    return RevokeAllResponse(user_id=user_id, revoked_count=count)
