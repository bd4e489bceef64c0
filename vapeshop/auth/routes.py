from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response
from vapeshop.api import version_prefix
from vapeshop.auth.constants import (ACCESS_COOKIE_NAME, ACCESS_TOKEN_TTL_SECONDS, INVALID_CODE_ERROR,
                                     REFRESH_COOKIE_NAME, REFRESH_TOKEN_TTL_SECONDS, logger)
from vapeshop.auth.dependencies import (get_notifier, get_phone_auth_service, get_user_directory,
                                        refresh_token, send_code_validation)
from vapeshop.auth.models import PhoneSendCodeIn, PhoneVerifyCodeIn, TelegramAuthIn
from vapeshop.auth.services import (PhoneAuthError, PhoneAuthService, authenticate_telegram,
                                    issue_auth_tokens, refresh_auth_tokens)
from vapeshop.auth.telegram import TelegramNotifier
from vapeshop.common.utils import error_response, success_response
from vapeshop.config.admin_config import admin_config
from vapeshop.config.settings import config_settings
from vapeshop.user.dependencies import current_user
from vapeshop.user.models import public_user
from vapeshop.user.repository import UserDirectory

current_env = admin_config.ENV
secure_flag = False if current_env == "dev" else True

auth_router = APIRouter()


# status, client message, errors
PHONE_AUTH_ERRORS = {
    PhoneAuthError.USER_NOT_FOUND: (
        status.HTTP_404_NOT_FOUND,
        "Пользователь с таким номером телефона не найден",
        ["User not found"],
    ),
    PhoneAuthError.NO_MESSAGING_CHANNEL: (
        status.HTTP_404_NOT_FOUND,
        "К этому номеру не привязан Telegram. Войдите через Telegram",
        ["No messaging channel linked to this phone"],
    ),
    PhoneAuthError.DELIVERY_FAILED: (
        status.HTTP_502_BAD_GATEWAY,
        "Не удалось отправить код. Попробуйте позже",
        ["Code delivery failed"],
    ),
    PhoneAuthError.INVALID_OR_EXPIRED_CODE: (
        status.HTTP_400_BAD_REQUEST,
        "Неверный или просроченный код",
        [INVALID_CODE_ERROR],
    ),
    PhoneAuthError.STORAGE_ERROR: (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Внутренняя ошибка сервера",
        ["Internal server error"],
    ),
}


def phone_auth_error_response(error: PhoneAuthError) -> JSONResponse:
    status_code, message, errors = PHONE_AUTH_ERRORS[error]
    return error_response(message, status_code, errors=errors)


def set_auth_cookies(response: JSONResponse, tokens: dict) -> JSONResponse:
    response.set_cookie(ACCESS_COOKIE_NAME, tokens["accessToken"], httponly=True, secure=secure_flag,
                        path="/", max_age=ACCESS_TOKEN_TTL_SECONDS, samesite="lax")
    response.set_cookie(REFRESH_COOKIE_NAME, tokens["refreshToken"], httponly=True, secure=secure_flag,
                        path="/", max_age=REFRESH_TOKEN_TTL_SECONDS, samesite="lax")
    return response


def auth_success(user, tokens: dict, message: str) -> JSONResponse:
    response = success_response({"user": public_user(user), "tokens": tokens}, 200, message=message)
    return set_auth_cookies(response, tokens)


@auth_router.post("/phone/send-code")
async def send_phone_code(payload: PhoneSendCodeIn = Depends(send_code_validation),
                          service: PhoneAuthService = Depends(get_phone_auth_service)):

    result = await service.request_code(payload.phone)
    if not result.ok:
        return phone_auth_error_response(result.error)

    return success_response({"sent": True, "expiresIn": result.expires_in}, 200,
                            message="Authentication code sent successfully")


@auth_router.post("/phone/verify-code")
async def verify_phone_code(payload: PhoneVerifyCodeIn,
                            service: PhoneAuthService = Depends(get_phone_auth_service)):

    result = await service.verify_code(payload.phone, payload.code)
    if not result.ok:
        return phone_auth_error_response(result.error)

    tokens = issue_auth_tokens(result.user)
    return auth_success(result.user, tokens, "Phone authentication successful")


@auth_router.post("/telegram")
async def telegram_auth(payload: TelegramAuthIn,
                        users: UserDirectory = Depends(get_user_directory),
                        notifier: TelegramNotifier = Depends(get_notifier)):

    logger.info("auth.telegram.attempt", extra={"telegram_id": payload.id})

    user, created = await authenticate_telegram(users, notifier, payload.auth_data(),
                                                config_settings.TELEGRAM_BOT_TOKEN)
    tokens = issue_auth_tokens(user)
    return auth_success(user, tokens, "Registration successful" if created else "Login successful")


@auth_router.post("/refresh")
async def refresh_auth(token: Optional[str] = Depends(refresh_token),
                       users: UserDirectory = Depends(get_user_directory)):

    logger.info("auth.refresh.attempt")

    if not token:
        logger.warning("auth.refresh.failed", extra={"reason": "missing_refresh_token"})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token required")

    user, tokens = await refresh_auth_tokens(users, token)

    response = success_response({"tokens": tokens}, 200, message="Token refreshed successfully")
    logger.info("auth.refresh.success", extra={"user_public_id": str(user.public_id)})
    return set_auth_cookies(response, tokens)


@auth_router.post("/logout")
async def logout():

    res = success_response(None, 200, message="Logout successful")

    res.delete_cookie(key=ACCESS_COOKIE_NAME, path="/")
    res.delete_cookie(key=REFRESH_COOKIE_NAME, path="/")

    logger.info("auth.logout.success")
    return res


@auth_router.get("/me")
async def me(user=Depends(current_user)):
    return success_response({"user": public_user(user)}, 200, message="User profile retrieved successfully")


@auth_router.get("/verify")
async def verify_token(request: Request, user=Depends(current_user)):
    claims = getattr(request.state, "token_claims", None) or {}
    return success_response({"user": public_user(user), "tokenExpiration": claims.get("exp")}, 200,
                            message="Token is valid")


async def _user_avatar(user, notifier: TelegramNotifier) -> dict:
    if not user.telegram_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User has no Telegram ID")

    avatar = await notifier.get_profile_photo(user.telegram_id)
    if avatar is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No avatar found for user")
    return avatar


@auth_router.get("/avatar")
async def user_avatar(user=Depends(current_user), notifier: TelegramNotifier = Depends(get_notifier)):

    avatar = await _user_avatar(user, notifier)
    data = {**avatar, "photo_url": f"{version_prefix}/auth/avatar/file"}
    logger.info("auth.avatar.found", extra={"user_public_id": str(user.public_id)})
    return success_response(data, 200, message="Avatar retrieved")


@auth_router.get("/avatar/file")
async def user_avatar_file(user=Depends(current_user), notifier: TelegramNotifier = Depends(get_notifier)):

    avatar = await _user_avatar(user, notifier)
    content = await notifier.download_file(avatar["file_path"])
    if content is None:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to get user avatar")
    return Response(content=content, media_type="image/jpeg", headers={"Cache-Control": "private, max-age=3600"})


@auth_router.get("/telegram/status")
async def telegram_status(notifier: TelegramNotifier = Depends(get_notifier)):

    bot = await notifier.get_bot_info()
    data = {
        "configured": notifier.configured,
        "bot": {
            "id": bot.get("id"),
            "username": bot.get("username"),
            "first_name": bot.get("first_name"),
        } if bot else None,
    }
    return success_response(data, 200, message="Telegram bot status retrieved")
