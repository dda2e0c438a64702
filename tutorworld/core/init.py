"""
Application initialization module
Handles initial setup tasks like creating the default admin account
"""

import logging

from sqlalchemy.orm import Session

from tutorworld.core.config import settings
from tutorworld.core.hasher import PasswordHelper
from tutorworld.models.user import Role, User

logger = logging.getLogger(__name__)


def init_default_admin(db: Session) -> None:
    """
    Create the default admin from settings if no admin account exists.
    """
    try:
        existing_admin = (
            db.query(User)
            .filter(User.role == Role.ADMIN.value, User.is_deleted.is_(False))
            .first()
        )

        if existing_admin:
            logger.info(f"✅ Admin user already exists ({existing_admin.email})")
            return

        admin = User(
            email=settings.admin_default_email.lower(),
            hashed_password=PasswordHelper.hash_password(settings.admin_default_password),
            first_name=settings.admin_default_first_name,
            last_name=settings.admin_default_last_name,
            role=Role.ADMIN.value,
            is_active=True,
            is_email_verified=True,
        )

        db.add(admin)
        db.commit()
        db.refresh(admin)

        logger.info("=" * 60)
        logger.info("🎉 DEFAULT ADMIN CREATED SUCCESSFULLY!")
        logger.info(f"Email: {settings.admin_default_email}")
        logger.warning("⚠️  IMPORTANT: Change the default password immediately!")
        logger.info("=" * 60)

    except Exception as e:
        logger.error(f"❌ Failed to initialize default admin: {e}")
        db.rollback()
        raise


def initialize_application(db: Session) -> None:
    """
    Run all application initialization tasks.
    """
    logger.info("🚀 Starting application initialization...")
    init_default_admin(db)
    logger.info("✅ Application initialization completed!")
