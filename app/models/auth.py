from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from app.db.base import Base

DEFAULT_DEVICE = "default"
DEFAULT_PLATFORM = "default"


class AuthSession(Base):
    """Model for storing one refresh-token session per (user, device, platform).

    Device-less flows (plain sign-up / sign-in) use DEFAULT_DEVICE and DEFAULT_PLATFORM,
    so a user has at most one device-less session.
    """

    __tablename__ = "auth_sessions"
    __table_args__ = (
        UniqueConstraint("user_id", "device_id", "platform", name="uq_auth_sessions_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    device_id = Column(String(128), nullable=False, default=DEFAULT_DEVICE)
    platform = Column(String(64), nullable=False, default=DEFAULT_PLATFORM)
    refresh_token = Column(Text, nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
