from collections.abc import Callable
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from sessionguard.auth.schemas import CurrentToken
from sessionguard.auth.service import decode_access_token
from sessionguard.config import settings
from sessionguard.revocation.service import RevocationService

# auto_error=False so we don't 403 when no header but cookie is present
security = HTTPBearer(auto_error=False)


def extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    """Return the JWT from the HttpOnly cookie first, then the Authorization header."""
    cookie_token = request.cookies.get(settings.cookie_name)
    if cookie_token:
        return cookie_token
    if credentials and credentials.credentials:
        return credentials.credentials
    return None


def get_revocation_service(request: Request) -> RevocationService:
    return request.app.state.revocation_service


async def require_active_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    revocation: RevocationService = Depends(get_revocation_service),
) -> CurrentToken:
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Não autenticado",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_access_token(token)
        payload["sub"]
    except (JWTError, KeyError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido",
        )
    if await revocation.is_revoked(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token revogado",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentToken(raw=token, claims=payload)


def require_role(*roles: str) -> Callable:
    async def _check(current: CurrentToken = Depends(require_active_token)) -> CurrentToken:
        if current.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permissão insuficiente",
            )
        return current

    return _check
