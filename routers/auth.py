"""
Authentication routes: sign up, sign in/out, profile and token refresh.
"""
from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from core.security import (
    get_password_hash,
    verify_password,
    create_access_token,
    get_current_user,
    get_current_active_user,
)
from core.config import settings
from core.logging import get_logger
from core.rate_limiting import check_rate_limit
from core.text_utils import utcnow
from db_config import get_db
from models.models import User, UserSession, UserRoleEnum
from schemas.user import UserRead, ProfileUpdate, ProfileResponse, MessageResponse
from schemas.auth import (
    SignupRequest,
    SignupResponse,
    SigninRequest,
    SigninResponse,
    Token,
)
from services.activity_service import ActivityService

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

# Initialize logger for auth operations
logger = get_logger("auth")


def _store_session(db: Session, user: User, access_token: str, lifetime: timedelta) -> None:
    """Keep a single session row per user pointing at the latest token."""
    session = db.query(UserSession).filter(UserSession.user_id == user.id).first()
    if session:
        session.session_token = access_token
        session.updated_at = utcnow()
        session.expires_at = utcnow() + lifetime
        logger.debug("Updated existing user session", username=user.username, user_id=user.id)
    else:
        db.add(UserSession(
            user_id=user.id,
            session_token=access_token,
            expires_at=utcnow() + lifetime
        ))
        logger.debug("Created new user session", username=user.username, user_id=user.id)


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(signup_data: SignupRequest, request: Request, db: Session = Depends(get_db)):
    """
    Register a new reader account.

    - **username**: Must be unique, 3-50 characters
    - **email**: Must be unique and valid email format
    - **password**: Minimum 6 characters
    """
    check_rate_limit(request, "auth")
    logger.info("User signup attempt", username=signup_data.username, email=signup_data.email)

    if db.query(User).filter(User.email == signup_data.email).first():
        logger.warning("Signup failed - email already exists", email=signup_data.email)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    if db.query(User).filter(User.username == signup_data.username).first():
        logger.warning("Signup failed - username already exists", username=signup_data.username)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")

    db_user = User(
        username=signup_data.username,
        email=signup_data.email,
        password_hash=get_password_hash(signup_data.password),
        first_name=signup_data.first_name,
        last_name=signup_data.last_name,
        role=UserRoleEnum.user,
        is_active=True,
    )

    try:
        db.add(db_user)
        db.flush()
        ActivityService(db).log_activity(db_user, "signup", f"New account {db_user.username}", request)
        db.commit()
        db.refresh(db_user)
    except IntegrityError as e:
        db.rollback()
        logger.error("Signup failed - database integrity error", username=signup_data.username, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this username or email already exists"
        )

    logger.info("User signed up", username=db_user.username, user_id=db_user.id)
    return SignupResponse(message="Account created successfully", user=UserRead.model_validate(db_user))


@router.post("/signin", response_model=SigninResponse)
async def signin(signin_data: SigninRequest, request: Request, db: Session = Depends(get_db)):
    """
    Sign in and return a bearer token.

    - **email**: Email address or username
    - **password**: Account password
    """
    check_rate_limit(request, "auth")
    logger.info("Signin attempt", username_or_email=signin_data.email)

    user = db.query(User).filter(
        (User.email == signin_data.email) | (User.username == signin_data.email)
    ).first()

    if not user or not verify_password(signin_data.password, user.password_hash):
        logger.warning("Signin failed - invalid credentials", username_or_email=signin_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        logger.warning("Signin failed - account deactivated", username=user.username, user_id=user.id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is deactivated")

    lifetime = timedelta(minutes=settings.jwt_access_token_expire_minutes)
    access_token = create_access_token(data={"sub": user.username}, expires_delta=lifetime)

    user.last_login = utcnow()
    _store_session(db, user, access_token, lifetime)
    ActivityService(db).log_activity(user, "signin", None, request)
    db.commit()
    db.refresh(user)

    logger.info("Signin successful", username=user.username, user_id=user.id, role=user.role.value)

    return SigninResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        message="Signed in successfully",
        user=UserRead.model_validate(user),
    )


@router.post("/signout", response_model=MessageResponse)
async def signout(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Invalidate the caller's session; the token stops working immediately."""
    session = db.query(UserSession).filter(UserSession.user_id == current_user.id).first()
    if session:
        db.delete(session)
        db.commit()
        logger.info("User session deleted", username=current_user.username, user_id=current_user.id)
    else:
        logger.warning("No session found for signout", username=current_user.username, user_id=current_user.id)

    return MessageResponse(message="Signed out successfully")


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(current_user: User = Depends(get_current_active_user)):
    return ProfileResponse(user=UserRead.model_validate(current_user))


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    profile_update: ProfileUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    Update the caller's own profile (names, email, profile image).
    """
    logger.info("User profile update request", username=current_user.username, user_id=current_user.id)

    update_data = profile_update.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    if "email" in update_data:
        existing_user = db.query(User).filter(
            User.email == update_data["email"],
            User.id != current_user.id
        ).first()
        if existing_user:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = db.query(User).filter(User.id == current_user.id).first()
    for field, value in update_data.items():
        setattr(user, field, value)

    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)

    return ProfileResponse(user=UserRead.model_validate(user))


@router.post("/refresh", response_model=Token)
async def refresh_token(current_user: User = Depends(get_current_active_user), db: Session = Depends(get_db)):
    """
    Issue a fresh token and move the session over to it.
    """
    lifetime = timedelta(minutes=settings.jwt_access_token_expire_minutes)
    access_token = create_access_token(data={"sub": current_user.username}, expires_delta=lifetime)

    _store_session(db, current_user, access_token, lifetime)
    db.commit()

    return Token(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60
    )
