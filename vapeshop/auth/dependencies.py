from typing import Optional
from fastapi import Body, Cookie, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from vapeshop.auth.constants import PHONE_CODE_TTL_MINUTES, REFRESH_COOKIE_NAME, logger
from vapeshop.auth.models import PhoneSendCodeIn, RefreshIn
from vapeshop.auth.repository import PhoneCodeStore
from vapeshop.auth.services import PhoneAuthService
from vapeshop.auth.telegram import TelegramNotifier
from vapeshop.auth.utils import is_valid_phone
from vapeshop.db.dependencies import get_session
from vapeshop.user.repository import UserDirectory


def get_notifier(request: Request) -> TelegramNotifier:
    # built once in the app lifespan
    return request.app.state.notifier


def get_user_directory(session: AsyncSession = Depends(get_session)) -> UserDirectory:
    return UserDirectory(session)


def get_phone_auth_service(session: AsyncSession = Depends(get_session),
                           notifier: TelegramNotifier = Depends(get_notifier)) -> PhoneAuthService:
    return PhoneAuthService(PhoneCodeStore(session), UserDirectory(session), notifier,
                            code_ttl_minutes=PHONE_CODE_TTL_MINUTES)


async def send_code_validation(payload: PhoneSendCodeIn = Body(...)) -> PhoneSendCodeIn:
    if not payload.phone or not payload.phone.strip():
        logger.warning("phone_auth.validation.phone_missing")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Phone number is required")

    if not is_valid_phone(payload.phone):
        logger.warning("phone_auth.validation.phone_invalid")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid phone number format")

    return payload


def refresh_token(payload: Optional[RefreshIn] = Body(None),
                  refresh_header: Optional[str] = Header(None, alias="X-Refresh-Token"),
                  refresh_cookie: Optional[str] = Cookie(None, alias=REFRESH_COOKIE_NAME)):
    body_token = payload.refreshToken if payload else None
    return body_token or refresh_header or refresh_cookie
