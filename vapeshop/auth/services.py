import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from vapeshop.auth.constants import PHONE_CODE_TTL_MINUTES, build_code_message, logger
from vapeshop.auth.repository import PhoneCodeStore
from vapeshop.auth.telegram import TelegramNotifier, verify_telegram_auth
from vapeshop.auth.utils import (REFRESH_TOKEN_TYPE, create_access_token, create_refresh_token,
                                 decode_token, generate_code, normalize_phone)
from vapeshop.common.utils import now
from vapeshop.schema.full_schema import Users
from vapeshop.user.repository import UserDirectory


class PhoneAuthError(str, enum.Enum):
    USER_NOT_FOUND = "user_not_found"
    NO_MESSAGING_CHANNEL = "no_messaging_channel"
    DELIVERY_FAILED = "delivery_failed"
    INVALID_OR_EXPIRED_CODE = "invalid_or_expired_code"
    STORAGE_ERROR = "storage_error"


@dataclass
class PhoneAuthResult:
    ok: bool
    error: Optional[PhoneAuthError] = None
    user: Optional[Users] = None
    expires_in: Optional[int] = None  # minutes

    @classmethod
    def failure(cls, error: PhoneAuthError) -> "PhoneAuthResult":
        return cls(ok=False, error=error)


class PhoneAuthService:
    """
    Login by phone number: a one-time code is delivered to the telegram chat of the
    account owning the phone, and exchanged back for the account.

    Expected failures come back as PhoneAuthResult values, never as exceptions.
    """

    def __init__(self, code_store: PhoneCodeStore, users: UserDirectory, notifier: TelegramNotifier, *,
                 code_ttl_minutes: int = PHONE_CODE_TTL_MINUTES,
                 clock: Callable[[], datetime] = now):
        self.code_store = code_store
        self.users = users
        self.notifier = notifier
        self.code_ttl_minutes = code_ttl_minutes
        self.clock = clock

    async def request_code(self, raw_phone: str) -> PhoneAuthResult:
        phone = normalize_phone(raw_phone)
        logger.info("phone_auth.request.attempt", extra={"phone": phone})

        try:
            user = await self.users.by_normalized_phone(phone)
            if user is None:
                logger.warning("phone_auth.request.user_not_found", extra={"phone": phone})
                return PhoneAuthResult.failure(PhoneAuthError.USER_NOT_FOUND)

            if not user.telegram_id:
                logger.warning("phone_auth.request.no_channel", extra={"phone": phone, "user_id": user.id})
                return PhoneAuthResult.failure(PhoneAuthError.NO_MESSAGING_CHANNEL)

            chat_id = user.telegram_id
            user_id = user.id

            removed = await self.code_store.delete_expired_or_used(self.clock(), phone=phone)
            if removed:
                logger.debug("phone_auth.request.stale_codes_removed", extra={"phone": phone, "count": removed})

            code = generate_code()
            expires_at = self.clock() + timedelta(minutes=self.code_ttl_minutes)
            record = await self.code_store.create(phone, code, expires_at)
        except SQLAlchemyError:
            logger.exception("phone_auth.request.storage_error", extra={"operation": "request_code", "phone": phone})
            return PhoneAuthResult.failure(PhoneAuthError.STORAGE_ERROR)

        delivered = await self._deliver(chat_id, build_code_message(code, self.code_ttl_minutes), phone)
        if not delivered:
            try:
                await self.code_store.delete_unused(record)
            except SQLAlchemyError:
                logger.exception("phone_auth.request.rollback_failed", extra={"operation": "request_code", "phone": phone})
            logger.error("phone_auth.request.delivery_failed", extra={"phone": phone, "user_id": user_id})
            return PhoneAuthResult.failure(PhoneAuthError.DELIVERY_FAILED)

        logger.info("phone_auth.request.sent", extra={"phone": phone, "user_id": user_id})
        return PhoneAuthResult(ok=True, expires_in=self.code_ttl_minutes)

    async def _deliver(self, chat_id, text: str, phone: str) -> bool:
        try:
            return bool(await self.notifier.send(chat_id, text))
        except Exception:
            # a notifier failure of any kind is a delivery failure
            logger.exception("phone_auth.request.notifier_raised", extra={"operation": "request_code", "phone": phone})
            return False

    async def verify_code(self, raw_phone: str, code: str) -> PhoneAuthResult:
        phone = normalize_phone(raw_phone)
        current = self.clock()
        logger.info("phone_auth.verify.attempt", extra={"phone": phone})

        try:
            record = await self.code_store.find_valid(phone, code, current)
            if record is None:
                logger.warning("phone_auth.verify.invalid_code", extra={"phone": phone})
                return PhoneAuthResult.failure(PhoneAuthError.INVALID_OR_EXPIRED_CODE)

            if not await self.code_store.mark_used(record, current):
                logger.warning("phone_auth.verify.already_consumed", extra={"phone": phone})
                return PhoneAuthResult.failure(PhoneAuthError.INVALID_OR_EXPIRED_CODE)

            user = await self.users.by_normalized_phone(phone)
            if user is None:
                logger.warning("phone_auth.verify.user_not_found", extra={"phone": phone})
                return PhoneAuthResult.failure(PhoneAuthError.USER_NOT_FOUND)
        except SQLAlchemyError:
            logger.exception("phone_auth.verify.storage_error", extra={"operation": "verify_code", "phone": phone})
            return PhoneAuthResult.failure(PhoneAuthError.STORAGE_ERROR)

        try:
            await self.users.touch_last_login(user, current)
        except SQLAlchemyError:
            # the code is spent and the login stands; last_login is best effort
            logger.exception("phone_auth.verify.last_login_failed", extra={"operation": "verify_code", "phone": phone})

        logger.info("phone_auth.verify.success", extra={"phone": phone, "user_id": user.id})
        return PhoneAuthResult(ok=True, user=user)


def issue_auth_tokens(user: Users) -> Dict[str, str]:
    tokens = {
        "accessToken": create_access_token(user),
        "refreshToken": create_refresh_token(user),
    }
    logger.info("auth.tokens.issued", extra={"user_public_id": str(user.public_id)})
    return tokens


async def refresh_auth_tokens(users: UserDirectory, refresh_token: str):

    claims = decode_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
    if not claims:
        logger.warning("auth.refresh.validate_failed", extra={"reason": "invalid_or_expired_token"})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired refresh token")

    user = await users.by_public_id(claims.get("sub"))
    if not user or not user.is_active:
        logger.warning("auth.refresh.validate_failed", extra={"reason": "user_unavailable"})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

    return user, issue_auth_tokens(user)


async def authenticate_telegram(users: UserDirectory, notifier: TelegramNotifier, auth_data: Dict[str, Any],
                                bot_token: Optional[str], clock: Callable[[], datetime] = now):
    """Verify a Telegram Login Widget payload, then log in or register the telegram account."""

    if not verify_telegram_auth(auth_data, bot_token):
        logger.warning("auth.telegram.verification_failed", extra={"telegram_id": auth_data.get("id")})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Telegram authentication data")

    telegram_id = int(auth_data["id"])
    current = clock()

    user = await users.by_telegram_id(telegram_id)
    if user:
        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")
        user = await users.update_telegram_profile(user, username=auth_data.get("username"),
                                                   photo_url=auth_data.get("photo_url"), at=current)
        logger.info("auth.telegram.login", extra={"user_public_id": str(user.public_id)})
        return user, False

    user = await users.create_from_telegram(
        telegram_id,
        username=auth_data.get("username"),
        first_name=auth_data.get("first_name"),
        last_name=auth_data.get("last_name"),
        photo_url=auth_data.get("photo_url"),
        at=current,
    )
    logger.info("auth.telegram.registered", extra={"user_public_id": str(user.public_id)})

    greeting = auth_data.get("first_name") or auth_data.get("username") or "Пользователь"
    if not await notifier.send_welcome(telegram_id, greeting):
        logger.warning("auth.telegram.welcome_not_sent", extra={"user_public_id": str(user.public_id)})

    return user, True
