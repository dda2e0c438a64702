# core/security.py
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from jose import JWTError, jwt

from tutorworld.core.config import settings
from tutorworld.core.errors import AppError, Unauthenticated
from tutorworld.models.user import User

logger = logging.getLogger(__name__)


class JWTManager:
    """JWT token management for authentication"""

    def __init__(self):
        self.secret_key = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.access_token_expire = timedelta(hours=settings.jwt_access_expiration_hours)
        self.refresh_token_expire = timedelta(days=settings.jwt_refresh_expiration_days)
        self.issuer = settings.jwt_issuer

    def _encode(self, user: User, token_type: str, lifetime: timedelta) -> str:
        issued_at = datetime.now(timezone.utc)
        payload = {
            "sub": user.user_id,
            "email": user.email,
            "role": user.role,
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + lifetime).timestamp()),
            "iss": self.issuer,
        }
        try:
            return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        except JWTError as e:
            logger.error(f"Failed to create {token_type} token: {e}")
            raise AppError(f"Failed to create {token_type} token", 500)

    def create_access_token(self, user: User) -> str:
        """
        Create JWT access token for user

        Args:
            user: User model instance

        Returns:
            JWT access token string
        """
        token = self._encode(user, "access", self.access_token_expire)
        logger.info(f"Access token created for user: {user.user_id}")
        return token

    def create_refresh_token(self, user: User) -> str:
        """Create JWT refresh token for user (minimal claims)"""
        token = self._encode(user, "refresh", self.refresh_token_expire)
        logger.info(f"Refresh token created for user: {user.user_id}")
        return token

    def create_token_pair(self, user: User) -> Tuple[str, str]:
        """
        Create both access and refresh tokens

        Returns:
            Tuple of (access_token, refresh_token)
        """
        return self.create_access_token(user), self.create_refresh_token(user)

    def verify_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Verify and decode JWT token
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"verify_exp": True},
            )
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            raise Unauthenticated("Invalid or expired token")

        # Verify token type (check 'type' field, not 'role')
        if payload.get("type") != token_type:
            raise Unauthenticated(f"Invalid token type. Expected {token_type}")

        if not payload.get("sub"):
            raise Unauthenticated("Invalid token: missing subject")

        return payload

    def get_token_expiration(self, token: str) -> Optional[datetime]:
        """Get token expiration datetime, or None if the token cannot be read"""
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            return None

        exp_timestamp = payload.get("exp")
        if exp_timestamp:
            return datetime.fromtimestamp(exp_timestamp, tz=timezone.utc)
        return None


class TokenBlacklist:
    """Token blacklist management using Redis"""

    def __init__(self, redis_client=None):
        self.redis_client = redis_client
        self._memory_blacklist = set()  # Fallback for when Redis is unavailable

    def add_token(self, token: str, ttl: Optional[int] = None) -> bool:
        """
        Add token to blacklist

        Args:
            token: JWT token to blacklist
            ttl: Time to live in seconds (optional)

        Returns:
            True if successfully added, False otherwise
        """
        try:
            if self.redis_client:
                ttl = ttl or int(self.default_ttl().total_seconds())
                return bool(self.redis_client.setex(f"blacklist:{token}", max(ttl, 1), "1"))
            self._memory_blacklist.add(token)
            return True
        except Exception as e:
            logger.error(f"Failed to blacklist token: {e}")
            return False

    def is_blacklisted(self, token: str) -> bool:
        try:
            if self.redis_client:
                return bool(self.redis_client.get(f"blacklist:{token}"))
            return token in self._memory_blacklist
        except Exception as e:
            logger.error(f"Failed to check token blacklist: {e}")
            return False

    def clear(self) -> None:
        self._memory_blacklist.clear()

    @staticmethod
    def default_ttl() -> timedelta:
        return timedelta(hours=settings.jwt_access_expiration_hours)


# Global instances
jwt_manager = JWTManager()

# Redis is attached by the application lifespan when enabled
token_blacklist = TokenBlacklist()
