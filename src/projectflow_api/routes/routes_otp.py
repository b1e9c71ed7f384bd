from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import status
from loguru import logger

from projectflow_api.dependencies import get_email_sender
from projectflow_api.dependencies import get_settings
from projectflow_api.dependencies import get_store
from projectflow_api.schemas.schemas import ForgotPasswordRequest
from projectflow_api.schemas.schemas import MessageResponse
from projectflow_api.schemas.schemas import ResetPasswordRequest
from projectflow_api.schemas.schemas import VerifyOtpRequest
from projectflow_api.settings import Settings
from projectflow_api.workspace.orchestrator import otp_flow

ROUTER_OTP = APIRouter(tags=["Password Reset"])

ACCOUNT_NOT_FOUND = {
    "description": "No account with this email",
    "content": {"application/json": {"example": {"detail": "Account not found"}}},
}


@ROUTER_OTP.post(
    "/otp/forgot-password",
    response_model=MessageResponse,
    responses={status.HTTP_404_NOT_FOUND: ACCOUNT_NOT_FOUND},
)
async def forgot_password(
    request: Request,
    payload: ForgotPasswordRequest,
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
    email_sender=Depends(get_email_sender),
) -> MessageResponse:
    """Email a six digit reset code."""
    logger.info("Password reset requested", method=request.method, path=request.url.path)
    await otp_flow.send_otp(store, payload.email, settings, email_sender)
    return MessageResponse(message="OTP sent to your email")


##########################


@ROUTER_OTP.post(
    "/otp/verify-otp",
    response_model=MessageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {
            "description": "Wrong or expired code",
            "content": {"application/json": {"example": {"detail": "Invalid or expired OTP"}}},
        },
        status.HTTP_404_NOT_FOUND: ACCOUNT_NOT_FOUND,
    },
)
async def verify_otp(
    request: Request,
    payload: VerifyOtpRequest,
    store=Depends(get_store),
) -> MessageResponse:
    logger.info("Verifying reset code", method=request.method, path=request.url.path)
    await otp_flow.verify_otp(store, payload.email, payload.otp)
    return MessageResponse(message="OTP verified successfully")


##########################


@ROUTER_OTP.post(
    "/otp/reset-password",
    response_model=MessageResponse,
    responses={
        status.HTTP_403_FORBIDDEN: {
            "description": "No recent verification",
            "content": {
                "application/json": {"example": {"detail": "Please verify the OTP before resetting your password"}}
            },
        },
        status.HTTP_404_NOT_FOUND: ACCOUNT_NOT_FOUND,
    },
)
async def reset_password(
    request: Request,
    payload: ResetPasswordRequest,
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    """Set a new password after a successful code verification."""
    logger.info("Resetting password", method=request.method, path=request.url.path)
    await otp_flow.reset_password(
        store, payload.email, payload.new_password, settings, confirm_password=payload.confirm_password
    )
    return MessageResponse(message="Password reset successful")
