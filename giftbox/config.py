from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Gift Box Production Tracker"
    DATABASE_URL: str = "sqlite:///./giftbox.db"
    SQL_ECHO: bool = False

    LOG_LEVEL: str = "INFO"

    # Auth
    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 72
    DEFAULT_ADMIN_PASSWORD: str = "admin"

    # Order numbers look like PGB-2026-001
    ORDER_NUMBER_PREFIX: str = "PGB"

    # Orders sitting in quality_control longer than this count as quality issues
    QC_STALE_DAYS: int = 2

    DEFAULT_REORDER_LEVEL: Decimal = Decimal("10")

    # Webhook: list of callback URLs (comma-separated)
    WEBHOOK_URLS: str = ""

    model_config = {"env_file": ".env"}


settings = Settings()
