"""FastAPI dependencies for accessing app state and the authenticated principal."""

from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials
from fastapi.security import HTTPBearer
from loguru import logger

from projectflow_api.auth.tokens import decode_access_token
from projectflow_api.settings import Settings
from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.exceptions import AuthenticationFailed
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ServiceUnavailable
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.orchestrator.common import load_account

BEARER_SCHEME = HTTPBearer(auto_error=False, description="Token returned by `/api/login`")


def get_settings(request: Request) -> Settings:
    """
    Get application settings from request state.

    Parameters
    ----------
    request : Request
        FastAPI request object

    Returns
    -------
    Settings
        Application settings instance
    """
    return request.app.state.settings


def get_store(request: Request):
    """
    Get the workspace store from request state.

    The store is installed at startup once the database pool is initialized.

    Parameters
    ----------
    request : Request
        FastAPI request object

    Returns
    -------
    WorkspaceStore
        Repositories over the workspace database

    Raises
    ------
    ServiceUnavailable
        503 when no database is configured or the pool failed to start
    """
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise ServiceUnavailable("Database is not available")
    return store


def get_email_sender(request: Request):
    return request.app.state.email_sender


def get_image_store(request: Request):
    return request.app.state.image_store


def get_client_ip(request: Request) -> Optional[str]:
    """Client address, preferring the first hop of ``X-Forwarded-For``."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else None


def get_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("User-Agent")


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(BEARER_SCHEME),
    settings: Settings = Depends(get_settings),
    store=Depends(get_store),
) -> Principal:
    """
    Resolve the bearer token to the calling principal.

    Parameters
    ----------
    request : Request
        FastAPI request object
    credentials : HTTPAuthorizationCredentials | None
        ``Authorization: Bearer <token>`` header, if present
    settings : Settings
        Application settings (token secret and algorithm)
    store : WorkspaceStore
        Repositories used to load the account

    Returns
    -------
    Principal
        Company-scoped caller with its role

    Raises
    ------
    AuthenticationFailed
        401 if the header is missing, the token is invalid or expired, it is a
        device or challenge token, or its account no longer exists
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationFailed("No token provided")

    claims = decode_access_token(credentials.credentials, settings)
    try:
        account = await load_account(store, AccountKind(claims["kind"]), UUID(claims["sub"]))
    except (NotFound, ValueError):
        logger.warning("Token subject not found", kind=claims.get("kind"), path=request.url.path)
        raise AuthenticationFailed("User not found") from None

    return Principal.from_account(account)
