from fastapi import APIRouter, Depends, HTTPException, status
import html
import logging
from isodoc.core.config import get_settings
from isodoc.core.dependencies import get_auth_service, get_current_user, get_email_service
from isodoc.core.exceptions import ValidationFailedError
from isodoc.models.auth import (
    ChangePasswordRequest,
    ContactRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetLink,
    ResetPasswordRequest,
    TokenResponse,
)
from isodoc.models.base import User
from isodoc.models.user import UserResponse
from isodoc.services.auth_service import AuthService
from isodoc.services.email_service import EmailService

logger = logging.getLogger(__name__)
router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "If the email is registered, a reset link has been sent"

@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, auth_service: AuthService = Depends(get_auth_service)):
    """
    Create an account with a company code; the code decides role and client
    """
    return await auth_service.register(payload.email, payload.password, payload.company_code)

@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, auth_service: AuthService = Depends(get_auth_service)):
    user, token, expires_at = await auth_service.login(payload.email, payload.password, payload.remember_me)
    return TokenResponse(access_token=token, expires_at=expires_at, user=UserResponse.model_validate(user))

@router.post("/logout", response_model=MessageResponse)
async def logout(user: User = Depends(get_current_user), auth_service: AuthService = Depends(get_auth_service)):
    await auth_service.logout(user)
    return MessageResponse(message="Logged out")

@router.get("/user", response_model=UserResponse)
async def current_user(user: User = Depends(get_current_user)):
    return user

@router.post("/extend-session", response_model=TokenResponse)
async def extend_session(
    remember_me: bool = False,
    user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    token, expires_at = await auth_service.extend_session(user, remember_me)
    return TokenResponse(access_token=token, expires_at=expires_at, user=UserResponse.model_validate(user))

@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    await auth_service.change_password(user, payload.current_password, payload.new_password)
    return MessageResponse(message="Password updated")

@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(payload: ForgotPasswordRequest, auth_service: AuthService = Depends(get_auth_service)):
    """
    Always answers the same way so the endpoint cannot reveal which accounts exist
    """
    await auth_service.request_password_reset(payload.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

@router.post("/verify-reset-link", response_model=MessageResponse)
async def verify_reset_link(payload: ResetLink, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.verify_reset_link(payload.data, payload.expires, payload.signature)
    return MessageResponse(message="Reset link is valid")

@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(payload: ResetPasswordRequest, auth_service: AuthService = Depends(get_auth_service)):
    await auth_service.reset_password(payload.data, payload.expires, payload.signature, payload.new_password)
    return MessageResponse(message="Password has been reset")

@router.post("/contact", response_model=MessageResponse)
async def contact(payload: ContactRequest, email_service: EmailService = Depends(get_email_service)):
    settings = get_settings()
    if not settings.CONTACT_EMAIL:
        raise ValidationFailedError("Contact address is not configured")
    sent = await email_service.send_template(
        "contact_request",
        [settings.CONTACT_EMAIL],
        reply_to=payload.email,
        name=html.escape(payload.name),
        email=html.escape(payload.email),
        message=html.escape(payload.message),
    )
    if not sent:
        logger.error(f"Contact request from {payload.email} could not be delivered")
        raise HTTPException(
            status_code=500,
            detail="Failed to send message"
        )
    return MessageResponse(message="Message sent")
