from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from tutorworld.core.config import settings
from tutorworld.core.database import get_db
from tutorworld.core.dependencies import get_bearer_token, get_current_user, get_notifier
from tutorworld.core.limiter import limiter
from tutorworld.models.user import User
from tutorworld.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    EmailOnlyRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    UpdateProfileRequest,
    UserResponse,
    VerifyEmailRequest,
)
from tutorworld.schemas.common import MessageResponse
from tutorworld.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(result: Dict[str, Any]) -> AuthResponse:
    return AuthResponse(**{**result, "user": UserResponse.model_validate(result["user"])})


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
) -> RegisterResponse:
    """Create an unverified student account and email a verification code"""
    user = AuthService(db, notifier).register(payload)
    return RegisterResponse(
        user=UserResponse.model_validate(user),
        message="Registration successful. Please check your email for verification code.",
    )


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email(payload: VerifyEmailRequest, db: Session = Depends(get_db)):
    AuthService(db).verify_email(payload.email, payload.code)
    return MessageResponse(message="Email verified successfully")


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    payload: EmailOnlyRequest,
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    AuthService(db, notifier).resend_verification(payload.email)
    return MessageResponse(message="Verification code sent successfully")


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.rate_limit_login)
async def login(
    request: Request,
    payload: LoginRequest,
    db: Session = Depends(get_db),
) -> AuthResponse:
    ip_address = request.client.host if request.client else None
    result = AuthService(db).login(payload.email, payload.password, ip_address=ip_address)
    return _auth_response(result)


@router.post("/refresh", response_model=AuthResponse)
async def refresh_token(payload: RefreshTokenRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Refresh access token using refresh token"""
    return _auth_response(AuthService(db).refresh(payload.refresh_token))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    current_user: Annotated[User, Depends(get_current_user)],
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
):
    AuthService(db).logout(token, current_user)
    return MessageResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: EmailOnlyRequest,
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    message = AuthService(db, notifier).forgot_password(payload.email)
    return MessageResponse(message=message)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    AuthService(db).reset_password(payload.email, payload.code, payload.new_password)
    return MessageResponse(message="Password reset successfully")


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserResponse:
    """Get current user information"""
    return UserResponse.model_validate(current_user)


@router.put("/me", response_model=UserResponse)
async def update_profile(
    payload: UpdateProfileRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Session = Depends(get_db),
) -> UserResponse:
    user = AuthService(db).update_profile(current_user, payload)
    return UserResponse.model_validate(user)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Session = Depends(get_db),
):
    AuthService(db).change_password(current_user, payload.current_password, payload.new_password)
    return MessageResponse(message="Password changed successfully")
