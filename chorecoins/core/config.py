from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CHORECOINS_", env_file=".env", extra="ignore")
    DATABASE_URL: str = "sqlite:///./chorecoins.db"
    SQL_ECHO: bool = False

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_MIN: int = 60 * 24

    # calendar days and weekdays are decided in this zone
    TIMEZONE: str = "UTC"

    COIN_CASH_RATE: Decimal = Decimal("0.01")
    DEFAULT_COIN_REWARD: int = 10
    DEFAULT_MISSED_CHORE_DEDUCTION: int = 5
    DEFAULT_GRACE_PERIOD_HOURS: int = 24
    CONFLICT_RETRIES: int = 3

    NOTIFY_WEBHOOK_URL: str | None = None
    NOTIFY_TIMEOUT_SECONDS: float = 5.0

    LOG_LEVEL: str = "INFO"


settings = Settings()
