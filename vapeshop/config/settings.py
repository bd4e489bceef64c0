from pydantic_settings import BaseSettings

class Settings(BaseSettings):

    DATABASE_URL: str
    DB_ECHO: bool = False
    DB_CREATE_ALL: bool = False
    JWT_SECRET: str
    JWT_ALGO: str = "HS256"
    JWT_ISSUER: str = "medusa-vape-shop"
    JWT_AUDIENCE: str = "medusa-vape-shop-client"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 7 * 24 * 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    TELEGRAM_BOT_TOKEN: str | None = None
    TELEGRAM_API_URL: str = "https://api.telegram.org"
    TELEGRAM_TIMEOUT_SECONDS: float = 10.0
    TELEGRAM_AUTH_MAX_AGE_SECONDS: int = 86400
    PHONE_CODE_TTL_MINUTES: int = 10
    CODE_CLEANUP_INTERVAL_SECONDS: int = 3600

    class Config:
        env_file = ".env"
        extra="ignore"

config_settings = Settings()
