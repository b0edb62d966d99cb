"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is missing.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Database
    database_url: str
    database_pool_size: int = 10
    database_max_overflow: int = 5

    # Scheduling
    clinic_timezone: str = "Africa/Cairo"  # Only used to read "now" as clinic wall clock
    slot_granularity_minutes: int = 30
    default_language: str = "en"  # en, ar
    default_currency: str = "EGP"

    # Twilio (patient notifications)
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_number: str = ""
    twilio_messaging_service_sid: str = ""
    notification_channel: str = "sms"  # sms, whatsapp
    notifications_enabled: bool = True
    default_country_code: str = "20"  # Prefix for local 0xxx patient numbers

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
