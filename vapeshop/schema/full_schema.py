import enum
from uuid import UUID
from uuid6 import uuid7
from datetime import datetime
from typing import Optional
from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, Text, Uuid
from sqlmodel import Column, SQLModel, Field, String
from vapeshop.common.utils import now


class UserRole(str, enum.Enum):
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"


class Users(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)  #* optional just means for the created object before saving in db .
    public_id: UUID = Field(
        default_factory=uuid7,
        sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False)
    )
    # telegram chat id doubles as the messaging channel for phone codes
    telegram_id: Optional[int] = Field(default=None, sa_column=Column(BigInteger(), unique=True, nullable=True))
    username: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True, index=True))
    first_name: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    last_name: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    photo_url: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    language_code: Optional[str] = Field(default="ru", sa_column=Column(String(10), nullable=True, default="ru"))
    role: str = Field(default=UserRole.USER.value, sa_column=Column(String(50), nullable=False, default=UserRole.USER.value, index=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean(), nullable=False, default=True))
    phone: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    normalized_phone: Optional[str] = Field(default=None, sa_column=Column(String(20), nullable=True, index=True))
    last_login: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))


class PhoneAuthCode(SQLModel, table=True):
    """One-time login code delivered over telegram. Matched to users by phone, not by FK."""
    __tablename__ = "phone_auth_codes"

    id: Optional[int] = Field(default=None, primary_key=True)
    phone: str = Field(sa_column=Column(String(20), nullable=False))  # normalized, digits only
    code: str = Field(sa_column=Column(String(6), nullable=False))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    used: bool = Field(default=False, sa_column=Column(Boolean(), nullable=False, default=False))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now))

    __table_args__ = (
        Index("ix_phone_auth_codes_phone", "phone"),
        Index("ix_phone_auth_codes_phone_used", "phone", "used"),
        Index("ix_phone_auth_codes_expires_at", "expires_at"),
        Index("ix_phone_auth_codes_code_phone_used", "code", "phone", "used"),
    )


class HomeBlock(SQLModel, table=True):
    __tablename__ = "home_blocks"

    id: Optional[int] = Field(default=None, primary_key=True)
    key: str = Field(sa_column=Column(String(64), nullable=False, unique=True))
    title: str = Field(sa_column=Column(String(255), nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    is_visible: bool = Field(default=True, sa_column=Column(Boolean(), nullable=False, default=True))
    position: int = Field(sa_column=Column(Integer(), nullable=False))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))
