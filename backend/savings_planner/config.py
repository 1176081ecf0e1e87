from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Savings Planner API"
    exchange_rate_api_key: str = ""
    # v6 API layout: {base_url}/{api_key}/latest/USD
    exchange_rate_api_base_url: str = "https://v6.exchangerate-api.com/v6"
    exchange_rate_cache_ttl_seconds: int = 60 * 60
    exchange_rate_timeout_seconds: float = 10.0
    default_inr_rate: Decimal = Decimal("83.5")
    # Directory for the JSON key-value files. Empty string keeps state in memory.
    storage_dir: str = ".savings_planner"
    log_level: str = "INFO"
    log_json: bool = False
    # Comma-separated origins for CORS.
    cors_allow_origins: str = "*"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
