"""FastAPI dependency utilities."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from portal.application.realtime import RealtimeService
from portal.domain.entities import Principal
from portal.infrastructure.security import principal_from_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login")


def resolve_principal(token: str) -> Principal:
    """Resolve the caller identity for the provided token."""

    try:
        return principal_from_token(token)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access denied. Invalid credentials.",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def get_current_principal(token: str = Depends(oauth2_scheme)) -> Principal:
    """Return the authenticated caller from the bearer token."""

    return resolve_principal(token)


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Ensure the authenticated caller has administrator privileges."""

    if not principal.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Insufficient permissions.",
        )
    return principal


def get_realtime_service(request: Request) -> RealtimeService:
    """Return the realtime service created by the application lifespan."""

    service = getattr(request.app.state, "realtime", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Realtime service is not running",
        )
    return service
