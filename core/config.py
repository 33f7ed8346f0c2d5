# ==================================================================================
# core/config.py — Add-on Expiration Service Configuration (Pydantic v2 Settings)
# ==================================================================================
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import EmailStr, ValidationError
import sys


class Settings(BaseSettings):
    # ------------------------
    # DATABASE CONFIG
    # ------------------------
    DATABASE_URL: str = "sqlite:///./pagecraft.db"

    # ------------------------
    # SENDGRID EMAIL CONFIG
    # ------------------------
    SENDGRID_API_KEY: str | None = None
    MAIL_FROM: EmailStr = "no-reply@pagecraft.app"
    MAIL_FROM_NAME: str = "Pagecraft"
    APP_NAME: str = "Pagecraft"

    # ------------------------
    # FRONTEND CONFIG
    # ------------------------
    FRONTEND_URL: str = "http://localhost:5173"
    ADDON_RENEWAL_PATH: str = "/dashboard/billing/addons"

    @property
    def ADDON_RENEWAL_URL(self) -> str:
        """Link used in add-on emails to renew or buy add-ons again"""
        return f"{self.FRONTEND_URL.rstrip('/')}{self.ADDON_RENEWAL_PATH}"

    # ------------------------
    # REDIS CACHE CONFIG
    # ------------------------
    REDIS_URL: str | None = None

    # ------------------------
    # CLOUDFLARE CONFIG
    # ------------------------
    CLOUDFLARE_API_TOKEN: str | None = None
    CLOUDFLARE_API_BASE_URL: str = "https://api.cloudflare.com/client/v4"
    CLOUDFLARE_TIMEOUT_SECONDS: float = 10.0

    # ------------------------
    # CRON / EXPIRATION JOBS
    # ------------------------
    CRON_SECRET: str | None = None
    WARNING_WINDOW_DAYS: int = 8
    ENABLE_EXPIRATION_SCHEDULER: bool = False
    EXPIRATION_JOB_INTERVAL_SECONDS: int = 86400

    # ------------------------
    # ENVIRONMENT SETTINGS
    # ------------------------
    ENVIRONMENT: str = "development"  # 'development' | 'production'
    DEBUG: bool = True

    @property
    def IS_PRODUCTION(self) -> bool:
        """Convenience helper to check if running in production"""
        return self.ENVIRONMENT.lower() == "production"

    # ------------------------
    # Pydantic v2 Settings
    # ------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# ------------------------
# Global Settings Loader
# ------------------------
try:
    settings = Settings()
except ValidationError as e:
    print("❌ Environment configuration error — missing or invalid settings!")
    print(e)
    sys.exit(1)
