from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class UserPublicOut(BaseModel):
    """Public profile. Internal ids and the normalized phone never leave the service."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(validation_alias="public_id")
    telegram_id: Optional[int] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    photo_url: Optional[str] = None
    language_code: Optional[str] = None
    role: str
    is_active: bool
    phone: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


def public_user(user) -> dict:
    return UserPublicOut.model_validate(user).model_dump(mode="json")
