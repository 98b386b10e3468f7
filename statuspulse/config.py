"""
StatusPulse configuration
"""

from pathlib import Path
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # project paths
    BASE_DIR: Path = Path(__file__).parent.parent

    # database
    database_url: str = Field(default="sqlite:///./data/statuspulse.db")

    # outbound email (SMTP)
    smtp_host: str = Field(default="smtp.gmail.com")
    smtp_port: int = Field(default=587)
    smtp_username: str = Field(default="")
    smtp_password: str = Field(default="")
    smtp_timeout_seconds: float = Field(default=30.0)
    email_sender: str = Field(default="")
    email_sender_name: str = Field(default="StatusPulse")

    # status page links
    status_page_base_domain: str = Field(default="statuspulse.dev")

    # subscriptions
    verification_expiry_days: int = Field(default=7)
    webhook_timeout_seconds: float = Field(default=10.0)

    # logging
    log_level: str = Field(default="INFO")


@lru_cache()
def get_settings() -> Settings:
    """Return the settings singleton"""
    return Settings()


settings = get_settings()
