import uuid

from sqlalchemy import JSON, Column, DateTime, String, Text, func

from app.db.base import Base


class User(Base):
    """Model for users table
    Example:
    {
        "id": "550e8400-e29b-41d4-a716-446655440000",
        "username": "Bob",
        "username_key": "bob",
        "sign_address": "0x9a3f...",
        "password": "$2b$10$...",
        "role": ["member"],
        "status": "active",
        "created_at": "2024-01-01T12:00:00",
        "updated_at": "2024-01-01T12:00:00"
    }
    username is unique regardless of case: username_key holds username.casefold(), computed
    in Python so the folding does not depend on the database's lower(). sign_address is
    stored lower-cased.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(64), nullable=False)
    username_key = Column(String(192), nullable=False, unique=True)  # casefold can expand
    sign_address = Column(String(64), nullable=True, unique=True)
    password = Column(Text, nullable=True)  # bcrypt hash
    role = Column(JSON, nullable=False, default=list)
    status = Column(String(32), nullable=False, default="active")
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
