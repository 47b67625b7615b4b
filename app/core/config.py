"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated (e.g. http://localhost:3000,https://talabahub.uz). Empty = default list in main.
    cors_origins: str = ""
    frontend_url: str = "http://localhost:3000"

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default
    db_pool_size: int = 10
    db_max_overflow: int = 20

    # ===========================================
    # AUTH (tokens are issued by the main TalabaHub API)
    # ===========================================
    jwt_secret_key: str | None = None
    jwt_algorithm: str = "HS256"

    # ===========================================
    # CLICK
    # ===========================================
    click_service_id: str = ""
    click_merchant_id: str = ""
    click_secret_key: str = ""
    click_checkout_url: str = "https://my.click.uz/services/pay"

    # ===========================================
    # PAYME
    # ===========================================
    payme_merchant_id: str = ""
    payme_secret_key: str = ""
    payme_checkout_url: str = "https://checkout.paycom.uz/"
    # Payme amounts are in tiyin: 1 sum = 100 tiyin
    payme_amount_multiplier: int = 100

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper().strip()

    @field_validator("frontend_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Return URLs are joined with paths, keep the base without '/'."""
        return v.rstrip("/")

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
