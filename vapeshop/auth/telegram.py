import hashlib
import hmac
import time
from typing import Any, Dict, Optional
import httpx
from vapeshop.auth.constants import build_welcome_message, logger
from vapeshop.config.settings import config_settings

TRANSIENT_EXCEPTIONS = (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)


class TelegramNotifier:
    """
    Delivers text messages to users through the Telegram Bot API.
    `send` never raises and never retries; callers decide what to do with a False.
    """

    def __init__(self, bot_token: Optional[str], *, api_url: str = config_settings.TELEGRAM_API_URL,
                 timeout: float = config_settings.TELEGRAM_TIMEOUT_SECONDS,
                 client: Optional[httpx.AsyncClient] = None):
        self.bot_token = bot_token
        self.api_url = api_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @property
    def configured(self) -> bool:
        return bool(self.bot_token)

    def _method_url(self, method: str) -> str:
        return f"{self.api_url}/bot{self.bot_token}/{method}"

    async def _call(self, method: str, payload: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        try:
            resp = await self._client.post(self._method_url(method), json=payload or {})
        except TRANSIENT_EXCEPTIONS as exc:
            logger.warning("telegram.call.transport_failed", extra={"method": method, "error": type(exc).__name__})
            return None
        except httpx.HTTPError as exc:
            logger.error("telegram.call.failed", extra={"method": method, "error": type(exc).__name__})
            return None

        if resp.status_code >= 400:
            logger.warning("telegram.call.rejected", extra={"method": method, "status_code": resp.status_code})
            return None

        try:
            data = resp.json()
        except ValueError:
            logger.warning("telegram.call.bad_payload", extra={"method": method})
            return None

        if not data.get("ok"):
            logger.warning("telegram.call.not_ok", extra={"method": method, "description": data.get("description")})
            return None
        return data

    async def send(self, chat_id, text: str) -> bool:
        if not self.configured:
            logger.warning("telegram.send.not_configured")
            return False

        data = await self._call("sendMessage", {"chat_id": chat_id, "text": text})
        if data is None:
            return False

        logger.info("telegram.send.success", extra={"chat_id": chat_id})
        return True

    async def send_welcome(self, chat_id, first_name: str) -> bool:
        return await self.send(chat_id, build_welcome_message(first_name))

    async def get_bot_info(self) -> Optional[Dict[str, Any]]:
        if not self.configured:
            return None
        data = await self._call("getMe")
        return data.get("result") if data else None

    async def get_profile_photo(self, telegram_id: int) -> Optional[Dict[str, Any]]:
        """Largest size of the user's latest profile photo as {file_id, file_path}, or None."""
        if not self.configured:
            return None

        data = await self._call("getUserProfilePhotos", {"user_id": telegram_id, "limit": 1})
        photos = ((data or {}).get("result") or {}).get("photos") or []
        if not photos or not photos[0]:
            logger.info("telegram.avatar.none", extra={"telegram_id": telegram_id})
            return None

        file_id = photos[0][-1].get("file_id")
        data = await self._call("getFile", {"file_id": file_id})
        file_path = ((data or {}).get("result") or {}).get("file_path")
        if not file_path:
            return None
        return {"file_id": file_id, "file_path": file_path}

    async def download_file(self, file_path: str) -> Optional[bytes]:
        # the download url embeds the bot token, so it never leaves the server
        if not self.configured:
            return None
        try:
            resp = await self._client.get(f"{self.api_url}/file/bot{self.bot_token}/{file_path}")
        except httpx.HTTPError as exc:
            logger.warning("telegram.download.failed", extra={"error": type(exc).__name__})
            return None
        if resp.status_code >= 400:
            logger.warning("telegram.download.rejected", extra={"status_code": resp.status_code})
            return None
        return resp.content

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()


def build_data_check_string(auth_data: Dict[str, Any]) -> str:
    return "\n".join(
        f"{key}={auth_data[key]}"
        for key in sorted(auth_data)
        if key != "hash" and auth_data[key] is not None
    )


def compute_auth_hash(auth_data: Dict[str, Any], bot_token: str) -> str:
    secret_key = hashlib.sha256(bot_token.encode()).digest()
    return hmac.new(secret_key, build_data_check_string(auth_data).encode(), hashlib.sha256).hexdigest()


def verify_telegram_auth(auth_data: Dict[str, Any], bot_token: Optional[str],
                         max_age_seconds: int = config_settings.TELEGRAM_AUTH_MAX_AGE_SECONDS,
                         now: Optional[float] = None) -> bool:
    """Check a Telegram Login Widget payload: HMAC over the data-check string and auth_date freshness."""
    if not bot_token:
        logger.warning("telegram.auth.not_configured")
        return False

    received = str(auth_data.get("hash") or "")
    try:
        auth_date = int(auth_data.get("auth_date"))
    except (TypeError, ValueError):
        logger.warning("telegram.auth.bad_auth_date")
        return False

    current = int(now if now is not None else time.time())
    if current - auth_date > max_age_seconds:
        logger.warning("telegram.auth.stale", extra={"age_seconds": current - auth_date})
        return False

    calculated = compute_auth_hash(auth_data, bot_token)
    if not hmac.compare_digest(calculated, received):
        logger.warning("telegram.auth.hash_mismatch")
        return False
    return True
