from typing import Optional
from pydantic import BaseModel, Field


class PhoneSendCodeIn(BaseModel):
    phone: Optional[str] = Field(None, max_length=32, examples=["+7 (999) 123-45-67"])


class PhoneVerifyCodeIn(BaseModel):
    phone: str = Field(..., min_length=1, max_length=32)
    code: str = Field(..., pattern=r"^\d{6}$", examples=["123456"])


class TelegramAuthIn(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    photo_url: Optional[str] = None
    auth_date: int
    hash: str

    def auth_data(self) -> dict:
        # only the fields telegram actually sent take part in the data-check string
        return self.model_dump(exclude_none=True)


class RefreshIn(BaseModel):
    refreshToken: Optional[str] = None
