"""
Startup seeding: the default administrator and the default categories.
"""
from typing import Optional
from sqlalchemy.orm import Session

from core.config import settings, DEFAULT_CATEGORIES
from core.logging import get_logger
from core.security import get_password_hash
from core.text_utils import slugify
from models.models import User, UserRoleEnum, Category

logger = get_logger("seed")


def ensure_admin(db: Session, username: str, email: str, password: str,
                 reset_password: bool = False) -> User:
    """
    Create the admin account, or promote an existing one with that username/email.

    The password is only replaced when `reset_password` is set.
    """
    user = db.query(User).filter((User.username == username) | (User.email == email)).first()

    if not user:
        logger.info("Creating admin user", username=username)
        user = User(
            username=username,
            email=email,
            password_hash=get_password_hash(password),
            first_name="Admin",
            last_name="User",
            role=UserRoleEnum.admin,
            is_active=True,
        )
        db.add(user)
    else:
        if user.role != UserRoleEnum.admin:
            logger.info("Promoting existing user to admin", username=user.username, user_id=user.id)
            user.role = UserRoleEnum.admin
        user.is_active = True
        if reset_password:
            logger.info("Resetting admin user password", username=user.username)
            user.password_hash = get_password_hash(password)

    db.commit()
    db.refresh(user)
    return user


def seed_default_admin(db: Session) -> Optional[User]:
    """Create the admin configured through DEFAULT_ADMIN_* settings, if any."""
    if not (settings.default_admin_username and settings.default_admin_email and settings.default_admin_password):
        logger.info("Default admin not configured, skipping")
        return None

    return ensure_admin(
        db,
        settings.default_admin_username,
        settings.default_admin_email,
        settings.default_admin_password,
        reset_password=settings.force_reset_password_admin,
    )


def seed_default_categories(db: Session) -> int:
    """Insert the default categories when the table is empty; returns how many were added."""
    if db.query(Category).count() > 0:
        return 0

    for name, description in DEFAULT_CATEGORIES:
        db.add(Category(name=name, slug=slugify(name), description=description))
    db.commit()

    logger.info("Default categories created", count=len(DEFAULT_CATEGORIES))
    return len(DEFAULT_CATEGORIES)
