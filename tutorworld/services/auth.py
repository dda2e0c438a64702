# tutorworld/services/auth.py
import logging
import secrets
from datetime import timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from tutorworld.core.clock import utcnow
from tutorworld.core.config import settings
from tutorworld.core.errors import (
    Conflict,
    Forbidden,
    InvalidState,
    NotFound,
    Unauthenticated,
    ValidationFailed,
    db_exception,
)
from tutorworld.core.hasher import PasswordHelper
from tutorworld.core.security import jwt_manager, token_blacklist
from tutorworld.models.audit_log import AuditAction
from tutorworld.models.user import Role, User
from tutorworld.schemas.auth import RegisterRequest, UpdateProfileRequest
from tutorworld.services.audit_log import AuditLogService
from tutorworld.utils.email import NotificationKind

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If the email exists, a reset code has been sent"


def generate_code() -> str:
    """Six digit one-time code"""
    return f"{secrets.randbelow(10 ** 6):06d}"


class AuthService:
    def __init__(self, db: Session, notifier=None, clock: Callable[[], Any] = utcnow):
        self.db = db
        self.notifier = notifier
        self.clock = clock
        self.audit = AuditLogService(db)

    # ---------- helpers ----------

    def _find_by_email(self, email: str) -> Optional[User]:
        return (
            self.db.query(User)
            .filter(User.email == email.lower(), User.is_deleted.is_(False))
            .first()
        )

    def _notify(self, user: User, kind: NotificationKind, data: Dict[str, Any]) -> bool:
        if self.notifier is None:
            return False
        try:
            return self.notifier.notify(user.email, kind, {"first_name": user.first_name, **data})
        except Exception as e:
            logger.error(f"Failed to send {kind.value} notification to {user.email}: {e}")
            return False

    def _token_response(self, user: User) -> Dict[str, Any]:
        access_token, refresh_token = jwt_manager.create_token_pair(user)
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": int(jwt_manager.access_token_expire.total_seconds()),
            "user": user,
        }

    # ---------- registration ----------

    @db_exception
    def register(self, data: RegisterRequest) -> User:
        # Soft-deleted accounts still hold their email
        if self.db.query(User.id).filter(User.email == data.email).first():
            raise Conflict("User with this email already exists")
        if data.username and self.db.query(User).filter(User.username == data.username).first():
            raise Conflict("Username is already taken")

        user = User(
            email=data.email,
            username=data.username,
            hashed_password=PasswordHelper.hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            grade=data.grade,
            school=data.school,
            role=Role.STUDENT.value,
            is_active=True,
            is_email_verified=False,
            verification_code=generate_code(),
            verification_code_expires_at=self.clock()
            + timedelta(hours=settings.verification_code_ttl_hours),
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"User registered: {user.user_id}")
        self._notify(user, NotificationKind.VERIFICATION_CODE, {"code": user.verification_code})
        return user

    @db_exception
    def verify_email(self, email: str, code: str) -> None:
        user = self._find_by_email(email)
        if not user:
            raise NotFound("User not found")
        if user.is_email_verified:
            raise InvalidState("Email is already verified")
        if not user.verification_code or user.verification_code != code:
            raise ValidationFailed("Invalid verification code")
        if not user.verification_code_expires_at or user.verification_code_expires_at < self.clock():
            raise ValidationFailed("Verification code has expired")

        user.is_email_verified = True
        user.verification_code = None
        user.verification_code_expires_at = None
        self.db.commit()
        logger.info(f"Email verified for user {user.user_id}")

    @db_exception
    def resend_verification(self, email: str) -> None:
        user = self._find_by_email(email)
        if not user:
            raise NotFound("User not found")
        if user.is_email_verified:
            raise InvalidState("Email is already verified")

        user.verification_code = generate_code()
        user.verification_code_expires_at = self.clock() + timedelta(
            hours=settings.verification_code_ttl_hours
        )
        self.db.commit()
        self._notify(user, NotificationKind.VERIFICATION_CODE, {"code": user.verification_code})

    # ---------- sessions ----------

    @db_exception
    def login(self, email: str, password: str, ip_address: Optional[str] = None) -> Dict[str, Any]:
        user = self._find_by_email(email)
        if not user or not PasswordHelper.check_password(password, user.hashed_password):
            logger.warning(f"Failed login attempt for {email}")
            raise Unauthenticated("Invalid email or password")

        if not user.is_active:
            raise Forbidden("Your account has been deactivated. Please contact administrator.")
        if not user.is_email_verified:
            raise Forbidden("Please verify your email before logging in")

        user.last_login = self.clock()
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"User logged in: {user.user_id}")
        self.audit.log(
            AuditAction.LOGIN, "user", user.user_id, user, target_label=user.email, ip_address=ip_address
        )
        return self._token_response(user)

    def refresh(self, refresh_token: str) -> Dict[str, Any]:
        if token_blacklist.is_blacklisted(refresh_token):
            raise Unauthenticated("Token has been revoked")

        payload = jwt_manager.verify_token(refresh_token, "refresh")
        user = (
            self.db.query(User)
            .filter(
                User.user_id == payload["sub"],
                User.is_deleted.is_(False),
                User.is_active.is_(True),
            )
            .first()
        )
        if not user:
            raise Unauthenticated("User not found or inactive")

        return self._token_response(user)

    def logout(self, access_token: str, user: User) -> None:
        expires_at = jwt_manager.get_token_expiration(access_token)
        ttl = None
        if expires_at:
            ttl = int((expires_at.replace(tzinfo=None) - utcnow()).total_seconds())
        token_blacklist.add_token(access_token, ttl if ttl and ttl > 0 else None)
        logger.info(f"User logged out: {user.user_id}")

    # ---------- passwords ----------

    @db_exception
    def forgot_password(self, email: str) -> str:
        """Same answer whether or not the account exists"""
        user = self._find_by_email(email)
        if not user:
            return FORGOT_PASSWORD_MESSAGE

        user.reset_code = generate_code()
        user.reset_code_expires_at = self.clock() + timedelta(minutes=settings.reset_code_ttl_minutes)
        self.db.commit()

        self._notify(user, NotificationKind.PASSWORD_RESET_CODE, {"code": user.reset_code})
        return FORGOT_PASSWORD_MESSAGE

    @db_exception
    def reset_password(self, email: str, code: str, new_password: str) -> None:
        user = self._find_by_email(email)
        if (
            not user
            or not user.reset_code
            or user.reset_code != code
            or not user.reset_code_expires_at
            or user.reset_code_expires_at < self.clock()
        ):
            raise ValidationFailed("Invalid or expired reset code")

        user.hashed_password = PasswordHelper.hash_password(new_password)
        user.reset_code = None
        user.reset_code_expires_at = None
        self.db.commit()
        logger.info(f"Password reset for user {user.user_id}")

    @db_exception
    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not PasswordHelper.check_password(current_password, user.hashed_password):
            raise ValidationFailed("Current password is incorrect")

        user.hashed_password = PasswordHelper.hash_password(new_password)
        self.db.commit()
        logger.info(f"Password changed for user {user.user_id}")

    # ---------- profile ----------

    @db_exception
    def update_profile(self, user: User, data: UpdateProfileRequest) -> User:
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)

        username = update_data.get("username")
        if username and username != user.username:
            taken = (
                self.db.query(User.id)
                .filter(User.username == username, User.id != user.id)
                .first()
            )
            if taken:
                raise Conflict("Username is already taken")

        for field, value in update_data.items():
            setattr(user, field, value)

        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Profile updated for user {user.user_id}")
        return user
