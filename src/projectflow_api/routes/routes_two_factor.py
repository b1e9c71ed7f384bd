from fastapi import APIRouter
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
from projectflow_api.schemas.schemas import DeviceValidateRequest
from projectflow_api.schemas.schemas import MessageResponse
from projectflow_api.schemas.schemas import SecondFactorResponse
from projectflow_api.schemas.schemas import TwoFactorCodeRequest
from projectflow_api.schemas.schemas import TwoFactorVerifyRequest
from projectflow_api.schemas.schemas import profile_of
from projectflow_api.settings import Settings
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.orchestrator import two_factor_flow
from projectflow_api.workspace.orchestrator.two_factor_flow import TwoFactorSetup

ROUTER_TWO_FACTOR = APIRouter(tags=["Two-Factor Authentication"])

INVALID_CODE = {
    "description": "Code rejected",
    "content": {"application/json": {"example": {"detail": "Invalid verification code"}}},
}


@ROUTER_TWO_FACTOR.post("/two-factor/setup", response_model=TwoFactorSetup)
async def setup(
    request: Request,
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(get_current_principal),
) -> TwoFactorSetup:
    """Generate a secret, QR code and backup codes. 2FA stays off until enabled with a valid code."""
    logger.info("Two-factor setup", method=request.method, path=request.url.path)
    return await two_factor_flow.setup(store, principal, settings)


##########################


@ROUTER_TWO_FACTOR.post(
    "/two-factor/enable",
    response_model=MessageResponse,
    responses={status.HTTP_400_BAD_REQUEST: INVALID_CODE},
)
async def enable(
    request: Request,
    payload: TwoFactorCodeRequest,
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(get_current_principal),
) -> MessageResponse:
    logger.info("Enabling two-factor", method=request.method, path=request.url.path)
    await two_factor_flow.enable(store, principal, payload.code, settings)
    return MessageResponse(message="Two-factor authentication enabled successfully")


@ROUTER_TWO_FACTOR.post(
    "/two-factor/disable",
    response_model=MessageResponse,
    responses={status.HTTP_400_BAD_REQUEST: INVALID_CODE},
)
async def disable(
    request: Request,
    payload: TwoFactorCodeRequest,
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(get_current_principal),
) -> MessageResponse:
    logger.info("Disabling two-factor", method=request.method, path=request.url.path)
    await two_factor_flow.disable(store, principal, payload.code, settings)
    return MessageResponse(message="Two-factor authentication disabled successfully")


##########################


@ROUTER_TWO_FACTOR.post(
    "/two-factor/verify",
    response_model=SecondFactorResponse,
    responses={
        status.HTTP_401_UNAUTHORIZED: {
            "description": "Challenge expired or code rejected",
            "content": {"application/json": {"example": {"detail": "Invalid verification code"}}},
        },
    },
)
async def verify(
    request: Request,
    payload: TwoFactorVerifyRequest,
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
    email_sender=Depends(get_email_sender),
) -> SecondFactorResponse:
    """Second login step with a TOTP or backup code."""
    logger.info("Verifying second factor", method=request.method, path=request.url.path)
    outcome = await two_factor_flow.verify_login(
        store,
        payload.challenge_token,
        payload.code,
        settings,
        email_sender,
        remember_device=payload.remember_device,
        device_name=payload.device_name,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    message = "Login successful using backup code" if outcome.used_backup_code else "Login successful"
    return SecondFactorResponse(
        message=message,
        token=outcome.token,
        device_token=outcome.device_token,
        device_id=outcome.device_id,
        user=profile_of(outcome.account),
    )


@ROUTER_TWO_FACTOR.post(
    "/two-factor/validate-device",
    response_model=SecondFactorResponse,
    responses={
        status.HTTP_401_UNAUTHORIZED: {
            "description": "Device unknown or expired",
            "content": {"application/json": {"example": {"detail": "Device token expired"}}},
        },
    },
)
async def validate_device(
    request: Request,
    payload: DeviceValidateRequest,
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
    email_sender=Depends(get_email_sender),
) -> SecondFactorResponse:
    """Skip the second factor on a trusted device."""
    logger.info("Validating trusted device", method=request.method, path=request.url.path)
    outcome = await two_factor_flow.validate_device(
        store,
        payload.challenge_token,
        payload.device_token,
        settings,
        email_sender,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return SecondFactorResponse(
        message="Device verified",
        token=outcome.token,
        device_id=outcome.device_id,
        user=profile_of(outcome.account),
    )


##########################


@ROUTER_TWO_FACTOR.get("/two-factor/backup-codes")
async def get_backup_codes(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info("Listing backup codes", method=request.method, path=request.url.path)
    codes = await two_factor_flow.get_backup_codes(store, principal)
    return {"backup_codes": codes, "remaining": len(codes)}


@ROUTER_TWO_FACTOR.post("/two-factor/backup-codes/regenerate")
async def regenerate_backup_codes(
    request: Request,
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(get_current_principal),
):
    logger.info("Regenerating backup codes", method=request.method, path=request.url.path)
    codes = await two_factor_flow.regenerate_backup_codes(store, principal, settings)
    return {"message": "Backup codes regenerated", "backup_codes": codes}


##########################


@ROUTER_TWO_FACTOR.get("/two-factor/trusted-devices")
async def list_trusted_devices(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info("Listing trusted devices", method=request.method, path=request.url.path)
    return {"devices": await two_factor_flow.list_trusted_devices(store, principal)}


@ROUTER_TWO_FACTOR.delete(
    "/two-factor/trusted-devices/{device_id}",
    response_model=MessageResponse,
    responses={
        status.HTTP_404_NOT_FOUND: {
            "description": "Device not found",
            "content": {"application/json": {"example": {"detail": "Device not found"}}},
        },
    },
)
async def remove_trusted_device(
    request: Request,
    device_id: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
) -> MessageResponse:
    logger.info("Removing trusted device", device_id=device_id, method=request.method, path=request.url.path)
    await two_factor_flow.remove_trusted_device(store, principal, device_id)
    return MessageResponse(message="Device removed successfully")
