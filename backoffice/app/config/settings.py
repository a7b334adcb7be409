"""Application configuration models and utilities."""

from functools import lru_cache

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    supabase_url: HttpUrl = Field(
        default="http://localhost:54321", alias="SUPABASE_URL"
    )
    supabase_key: str = Field(default="", alias="SUPABASE_KEY")
    use_mock_data: bool = Field(default=False, alias="USE_MOCK_DATA")
    exchange_rate_api_base: HttpUrl = Field(
        default="https://api.exchangerate-api.com/v4/latest",
        alias="EXCHANGE_RATE_API_BASE",
    )
    rate_cache_ttl_seconds: int = Field(
        default=300, ge=0, alias="RATE_CACHE_TTL_SECONDS"
    )
    default_currency: str = Field(default="GBP", alias="DEFAULT_CURRENCY")
    company_name: str = Field(default="GPGT TRAVEL", alias="COMPANY_NAME")
    app_name: str = Field(default="Travel Back Office", alias="APP_NAME")

    model_config = SettingsConfigDict(
        env_file=(".env.local", ".env"), env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached app settings instance."""
    return Settings()
