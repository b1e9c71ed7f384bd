from typing import Any
from typing import Dict

from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import Request
from fastapi import status
from loguru import logger

from projectflow_api.dependencies import get_client_ip
from projectflow_api.dependencies import get_current_principal
from projectflow_api.dependencies import get_email_sender
from projectflow_api.dependencies import get_settings
from projectflow_api.dependencies import get_store
from projectflow_api.dependencies import get_user_agent
from projectflow_api.schemas.schemas import LoginRequest
from projectflow_api.schemas.schemas import LoginResponse
from projectflow_api.schemas.schemas import ProfileUpdateRequest
from projectflow_api.schemas.schemas import RegisterRequest
from projectflow_api.schemas.schemas import profile_of
from projectflow_api.settings import Settings
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.orchestrator import account_flow

ROUTER_ACCOUNT = APIRouter(tags=["Accounts"])


@ROUTER_ACCOUNT.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_201_CREATED: {
            "description": "Owner and company registered",
            "content": {"application/json": {"example": {"message": "Registration successful", "user": {}}}},
        },
        status.HTTP_409_CONFLICT: {
            "description": "Email, company name, domain or id already registered",
            "content": {"application/json": {"example": {"detail": "Email already registered"}}},
        },
    },
)
async def register(
    request: Request,
    payload: RegisterRequest,
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
    email_sender=Depends(get_email_sender),
):
    """Register a company and its owner account."""
    logger.info(
        "Registering owner",
        company_name=payload.company_name,
        method=request.method,
        path=request.url.path,
    )
    owner = await account_flow.register_owner(store, payload.model_dump(), settings, email_sender)
    return {"message": "Registration successful", "user": profile_of(owner)}


##########################


@ROUTER_ACCOUNT.post(
    "/login",
    response_model=LoginResponse,
    responses={
        status.HTTP_200_OK: {
            "description": "Token issued, or a two-factor challenge when 2FA is enabled",
            "content": {
                "application/json": {
                    "example": {
                        "message": "Login successful",
                        "token": "eyJhbGciOiJIUzI1NiIs...",
                        "requires_two_factor": False,
                        "account_id": "6f1c9b6e-2f7a-4b8e-9a51-5d3c1f0a7e21",
                        "kind": "owner",
                    }
                }
            },
        },
        status.HTTP_401_UNAUTHORIZED: {
            "description": "Wrong password",
            "content": {"application/json": {"example": {"detail": "Incorrect password"}}},
        },
        status.HTTP_403_FORBIDDEN: {
            "description": "Temporary password expired or not yet changed",
            "content": {
                "application/json": {"example": {"detail": "Please update your password before logging in"}}
            },
        },
        status.HTTP_404_NOT_FOUND: {
            "description": "No account with this email",
            "content": {"application/json": {"example": {"detail": "User not found"}}},
        },
    },
)
async def login(
    request: Request,
    payload: LoginRequest,
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
    email_sender=Depends(get_email_sender),
) -> LoginResponse:
    """Log in an owner or an employee."""
    logger.info("Login attempt", method=request.method, path=request.url.path)
    outcome = await account_flow.login(
        store,
        payload.email,
        payload.password,
        settings,
        email_sender,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    account = outcome.account
    if outcome.requires_two_factor:
        return LoginResponse(
            message="Two-factor authentication required",
            requires_two_factor=True,
            challenge_token=outcome.challenge_token,
            account_id=account.account_id,
            kind=account.kind,
        )
    return LoginResponse(
        message="Login successful",
        token=outcome.token,
        account_id=account.account_id,
        kind=account.kind,
        user=profile_of(account),
    )


##########################


@ROUTER_ACCOUNT.get("/profile")
async def get_profile(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Profile of the caller."""
    logger.info("Getting profile", method=request.method, path=request.url.path)
    account = await account_flow.get_profile(store, principal)
    return {"user": profile_of(account)}


##########################


@ROUTER_ACCOUNT.put(
    "/profile",
    responses={
        status.HTTP_400_BAD_REQUEST: {
            "description": "Nothing to update or company name changed",
            "content": {"application/json": {"example": {"detail": "Company name cannot be changed"}}},
        },
    },
)
async def update_profile(
    request: Request,
    payload: ProfileUpdateRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Edit the caller's profile."""
    logger.info("Updating profile", method=request.method, path=request.url.path)
    account = await account_flow.update_profile(store, principal, payload.model_dump(exclude_none=True))
    return {"message": "Profile updated successfully", "user": profile_of(account)}


##########################


@ROUTER_ACCOUNT.put(
    "/settings/{section}",
    responses={
        status.HTTP_404_NOT_FOUND: {
            "description": "Unknown settings section",
            "content": {"application/json": {"example": {"detail": "Settings section not found"}}},
        },
    },
)
async def update_settings(
    request: Request,
    section: str,
    values: Dict[str, Any] = Body(..., examples=[{"email_notifications": True}]),
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Merge values into one of the notifications, appearance, security or privacy sections."""
    logger.info("Updating settings", section=section, method=request.method, path=request.url.path)
    updated = await account_flow.update_settings(store, principal, section, values)
    return {"message": f"{section.capitalize()} settings updated successfully", "settings": updated}
