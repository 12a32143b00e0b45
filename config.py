from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "SettleUp Ledger API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Project defaults
    SETTLEMENT_CURRENCY: str = "TWD"
    DEFAULT_PRECISION: int = 2

    # Exchange rates - free API, no key required
    EXCHANGE_RATE_API_URL: str = "https://api.exchangerate.host/latest"
    EXCHANGE_RATE_BASE: str = "USD"
    RATE_CACHE_SECONDS: int = 60 * 60
    RATE_REQUEST_TIMEOUT: float = 10.0


# Create settings instance
settings = Settings()
