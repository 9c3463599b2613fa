"""
Platform connection: one shared record per platform (brand account).
"""
from sqlalchemy import Column, String, DateTime, Text, JSON
from datetime import datetime, timezone
from ..database import Base


class PlatformConnection(Base):
    __tablename__ = "platform_connections"

    platform = Column(String(50), primary_key=True)  # facebook, linkedin
    credential = Column(Text, nullable=False)
    # Facebook: [{id, name, access_token}], LinkedIn: [{id, name}]
    targets = Column(JSON, default=list)
    connected_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
