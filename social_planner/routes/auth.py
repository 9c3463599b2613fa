"""
Authentication routes for login, register, token management and user removal.
"""
from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User, ROLE_ADMIN, ROLE_EDITOR
from ..schemas.auth import UserCreate, LoginRequest, RefreshRequest, TokenResponse, UserResponse
from ..auth import (
    verify_password,
    get_password_hash,
    create_tokens,
    get_required_user,
    get_admin_user,
    refresh_access_token,
)
from ..config import get_settings
from ..limiter import limiter
from ..logging_config import api_logger
from ..responses import success
from ..store import PostStore

settings = get_settings()

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not user.is_active or not verify_password(password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


@router.post("/register", response_model=UserResponse)
@limiter.limit("3/minute")
def register(request: Request, user_data: UserCreate, db: Session = Depends(get_db)):
    """Register a new user account."""
    email = user_data.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )
    role = user_data.role or ROLE_ADMIN
    if role not in (ROLE_ADMIN, ROLE_EDITOR):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role: {role}"
        )

    user = User(
        email=email,
        hashed_password=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    api_logger.info("User registered", email=email, role=role)
    return user


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.login_rate_limit)
def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """Login with OAuth2 form (username/password)."""
    user = _authenticate(db, form_data.username, form_data.password)
    access_token, refresh_token = create_tokens(user)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.post("/login/json", response_model=TokenResponse)
@limiter.limit(settings.login_rate_limit)
def login_json(request: Request, credentials: LoginRequest, db: Session = Depends(get_db)):
    """Login with JSON body (email/password)."""
    user = _authenticate(db, credentials.email, credentials.password)
    access_token, refresh_token = create_tokens(user)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.post("/refresh", response_model=TokenResponse)
@limiter.limit("10/minute")
def refresh_tokens(request: Request, refresh_request: RefreshRequest, db: Session = Depends(get_db)):
    """Get new access and refresh tokens using a valid refresh token."""
    tokens = refresh_access_token(refresh_request.refresh_token, db)
    if not tokens:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    access_token, refresh_token = tokens
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_required_user)):
    return current_user


@router.delete("/users/{email}")
def remove_user(
    email: str,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    """Deactivate a user and tombstone every post they own."""
    email = email.strip().lower()
    if email == admin.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot remove themselves")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    user.is_active = False
    db.commit()
    removed_posts = PostStore(db).soft_delete_by_owner(email)
    api_logger.info("User removed", email=email, removed_by=admin.email, removed_posts=removed_posts)
    return success({"email": email, "removed_posts": removed_posts}, message="User removed")
