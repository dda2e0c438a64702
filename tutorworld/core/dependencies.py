import logging
from typing import Annotated, Optional

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from tutorworld.core.database import get_db
from tutorworld.core.errors import Forbidden, Unauthenticated
from tutorworld.core.permissions import ensure_role
from tutorworld.core.security import jwt_manager, token_blacklist
from tutorworld.models.user import Role, User
from tutorworld.utils.email import EmailNotifier

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> str:
    if not credentials or not credentials.credentials:
        raise Unauthenticated("Not authenticated")
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the bearer credential to an active, non-deleted account.
    Raises Unauthenticated if the token is missing, invalid, revoked, or the
    account no longer exists.
    """
    if token_blacklist.is_blacklisted(token):
        raise Unauthenticated("Token has been revoked")

    payload = jwt_manager.verify_token(token, "access")

    user = (
        db.query(User)
        .filter(User.user_id == payload["sub"], User.is_deleted.is_(False))
        .first()
    )
    if not user:
        raise Unauthenticated("User not found")

    if not user.is_active:
        raise Forbidden("Your account has been deactivated. Please contact administrator.")

    return user


def require_roles(*roles: Role):
    """
    Dependency factory restricting an endpoint to the given roles.
    Usage: Depends(require_roles(Role.TEACHER, Role.ADMIN))
    """

    async def role_checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        ensure_role(current_user, *roles)
        return current_user

    return role_checker


get_current_student = require_roles(Role.STUDENT)
get_current_teacher = require_roles(Role.TEACHER, Role.ADMIN)
get_current_admin = require_roles(Role.ADMIN)


def get_notifier(request: Request) -> EmailNotifier:
    return request.app.state.notifier
