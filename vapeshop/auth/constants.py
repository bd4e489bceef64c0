from vapeshop.config.settings import config_settings
from vapeshop.common.logging_setup import get_logger

logger = get_logger("vapeshop.auth")

PHONE_CODE_TTL_MINUTES = int(config_settings.PHONE_CODE_TTL_MINUTES)

ACCESS_COOKIE_NAME = "access_token"

REFRESH_COOKIE_NAME = "refresh_token"

ACCESS_TOKEN_TTL_SECONDS = int(config_settings.ACCESS_TOKEN_EXPIRE_MINUTES) * 60

REFRESH_TOKEN_TTL_SECONDS = int(config_settings.REFRESH_TOKEN_EXPIRE_DAYS) * 24 * 3600

INVALID_CODE_ERROR = "Invalid or expired code"

SHOP_NAME = "Medusa Vape Shop"


def build_code_message(code: str, ttl_minutes: int = PHONE_CODE_TTL_MINUTES) -> str:
    return (
        "🔐 Код подтверждения для входа на сайт\n\n"
        f"Ваш код: {code}\n\n"
        f"⏰ Код действителен в течение {ttl_minutes} минут\n\n"
        "Если вы не запрашивали этот код, проигнорируйте это сообщение.\n\n"
        f"🌐 {SHOP_NAME}"
    )


def build_welcome_message(first_name: str) -> str:
    return (
        f"🎉 Добро пожаловать, {first_name}!\n\n"
        f"Вы успешно авторизовались в {SHOP_NAME}.\n\n"
        "🛍️ Теперь вы можете:\n"
        "• Просматривать каталог товаров\n"
        "• Добавлять товары в корзину\n"
        "• Оформлять заказы\n\n"
        "Приятных покупок! 🚀"
    )
