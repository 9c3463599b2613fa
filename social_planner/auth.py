"""
Authentication utilities for JWT tokens and password hashing.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models.user import User
from .config import get_settings

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _encode(data: dict, token_type: str, lifetime: timedelta) -> str:
    claims = data.copy()
    claims.update({"exp": datetime.now(timezone.utc) + lifetime, "type": token_type})
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    return _encode(data, "access", expires_delta or timedelta(minutes=settings.access_token_expire_minutes))


def create_refresh_token(data: dict) -> str:
    return _encode(data, "refresh", timedelta(days=settings.refresh_token_expire_days))


def create_tokens(user: User) -> Tuple[str, str]:
    """Create an access/refresh token pair; the subject is the user's e-mail."""
    data = {"sub": user.email, "role": user.role}
    return create_access_token(data), create_refresh_token(data)


def verify_token(token: str, expected_type: str = "access") -> Optional[dict]:
    """Decode a JWT and return its claims, or None if invalid, expired or of the wrong type."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type", "access") != expected_type:
        return None
    return payload


def _active_user(db: Session, email: Optional[str]) -> Optional[User]:
    if not email:
        return None
    return db.query(User).filter(User.email == email, User.is_active.is_(True)).first()


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Get the current user from the JWT token (optional auth)."""
    if not token:
        return None
    payload = verify_token(token, "access")
    if not payload:
        return None
    return _active_user(db, payload.get("sub"))


def get_required_user(
    current_user: Optional[User] = Depends(get_current_user)
) -> User:
    """Get the current user, raising 401 if not authenticated."""
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


def get_admin_user(current_user: User = Depends(get_required_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return current_user


def refresh_access_token(refresh_token: str, db: Session) -> Optional[Tuple[str, str]]:
    """Use a refresh token to get new access and refresh tokens."""
    payload = verify_token(refresh_token, "refresh")
    if not payload:
        return None

    # Removed or deactivated users cannot refresh
    user = _active_user(db, payload.get("sub"))
    if user is None:
        return None
    return create_tokens(user)
