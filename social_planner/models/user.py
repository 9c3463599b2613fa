"""
User model for authentication and ownership.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from datetime import datetime, timezone
from ..database import Base

ROLE_ADMIN = "admin"
ROLE_EDITOR = "editor"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(String(50), default=ROLE_ADMIN)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
