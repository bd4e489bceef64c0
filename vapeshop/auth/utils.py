import re
import secrets
from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from vapeshop.config.settings import config_settings

JWT_SECRET = config_settings.JWT_SECRET
JWT_ALGO = config_settings.JWT_ALGO
JWT_ISSUER = config_settings.JWT_ISSUER
JWT_AUDIENCE = config_settings.JWT_AUDIENCE

ACCESS_TOKEN_EXPIRE_MINUTES = int(config_settings.ACCESS_TOKEN_EXPIRE_MINUTES)
REFRESH_TOKEN_EXPIRE_DAYS = int(config_settings.REFRESH_TOKEN_EXPIRE_DAYS)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: str) -> str:
    """
    Collapse a user-entered phone number into the canonical key used for storage and lookup:
    digits only, always starting with the 7 country code.
    """
    normalized = _NON_DIGITS.sub("", phone or "")

    if normalized.startswith("8"):
        # domestic trunk prefix
        normalized = "7" + normalized[1:]
    elif normalized.startswith("7"):
        pass
    elif len(normalized) == 10:
        normalized = "7" + normalized
    else:
        normalized = "7" + normalized

    return normalized


def is_valid_phone(phone: str) -> bool:
    digits = _NON_DIGITS.sub("", phone or "")
    return 10 <= len(digits) <= 11


def generate_code() -> str:
    # 100000..999999, never zero padded
    return str(100000 + secrets.randbelow(900000))


def _encode(claims: dict, token_type: str, expires_in: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "type": token_type,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(claims=payload, key=JWT_SECRET, algorithm=JWT_ALGO)


def user_claims(user) -> dict:
    return {
        "sub": str(user.public_id),
        "role": user.role,
        "telegram_id": user.telegram_id,
    }


def create_access_token(user, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    return _encode(user_claims(user), ACCESS_TOKEN_TYPE, timedelta(minutes=expires_minutes))


def create_refresh_token(user, expires_days: int = REFRESH_TOKEN_EXPIRE_DAYS) -> str:
    return _encode(user_claims(user), REFRESH_TOKEN_TYPE, timedelta(days=expires_days))


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE):
    """To verify the signature , expiration , issuer/audience and token type"""
    try:
        token_data = jwt.decode(
            token,
            key=JWT_SECRET,
            algorithms=[JWT_ALGO],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
        )
    except JWTError:
        return None

    if token_data.get("type") != expected_type:
        return None
    return token_data
