"""
Security utilities for password hashing, JWT tokens and the auth dependencies.
"""
import uuid
from datetime import timedelta
from typing import Optional
from passlib.context import CryptContext
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from core.config import settings
from core.logging import security_logger
from core.text_utils import utcnow
from db_config import get_async_db
from models.models import User, UserRoleEnum, UserSession

logger = security_logger

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_salt_rounds,
)

# HTTP Bearer token schemes; the optional one lets anonymous requests through
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against its bcrypt hash.

    Returns False for malformed hashes instead of raising.
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.error("Password verification error", error=str(e))
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode; `sub` carries the username
        expires_delta: Optional custom lifetime, defaults to the configured token lifetime

    Returns:
        str: The encoded JWT token
    """
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes))
    to_encode.update({"exp": expire, "iat": utcnow(), "jti": uuid.uuid4().hex})
    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    logger.info("Access token created", username=data.get("sub"), expires_at=expire.isoformat())
    return encoded_jwt


def verify_token(token: str) -> Optional[dict]:
    """Decode a JWT token, returning None when it is invalid or expired."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning("Token verification failed", error=str(e))
        return None


async def _resolve_session_user(token_value: str, db: AsyncSession) -> Optional[User]:
    """Return the user owning a valid token with a live session row, else None."""
    payload = verify_token(token_value)
    if payload is None or payload.get("sub") is None:
        return None

    username = payload["sub"]
    user_result = await db.execute(select(User).where(User.username == username))
    user = user_result.scalar_one_or_none()
    if user is None:
        logger.warning("User not found for token", username=username)
        return None

    session_result = await db.execute(
        select(UserSession).where(
            UserSession.user_id == user.id,
            UserSession.session_token == token_value,
            or_(UserSession.expires_at > utcnow(), UserSession.expires_at.is_(None))
        )
    )
    if session_result.scalar_one_or_none() is None:
        logger.warning("No valid session found", username=username, user_id=user.id)
        return None

    return user


async def get_current_user(
    token: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_async_db)
) -> User:
    """
    Get the current user from the bearer token.

    The token must decode and must still have a matching, unexpired session row;
    signing out deletes that row, which invalidates the token.

    Raises:
        HTTPException: 401 if authentication fails
    """
    user = await _resolve_session_user(token.credentials, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        logger.warning("Inactive user attempted access",
                       username=current_user.username,
                       user_id=current_user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return current_user


async def get_current_admin_user(current_user: User = Depends(get_current_active_user)) -> User:
    if current_user.role != UserRoleEnum.admin:
        logger.warning("Non-admin user attempted admin action",
                       username=current_user.username,
                       user_id=current_user.id,
                       role=current_user.role.value)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return current_user


async def get_optional_user(
    token: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: AsyncSession = Depends(get_async_db)
) -> Optional[User]:
    """
    Resolve the caller when a valid bearer token is sent, otherwise None.

    Used by public endpoints that personalise output (the caller's vote) or
    attribute analytics rows to a user.
    """
    if token is None:
        return None
    user = await _resolve_session_user(token.credentials, db)
    if user is not None and not user.is_active:
        return None
    return user


def is_staff(user: User) -> bool:
    """Admins and moderators may manage other users' comments."""
    return user.role in (UserRoleEnum.admin, UserRoleEnum.moderator)
