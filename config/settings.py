"""
Configuration settings for the application
"""
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOGS_DIR = Path("./logs")

# Normalized plan types
PLAN_FREE = "FREE"
PLAN_PROFESSIONAL = "PROFESSIONAL"
PLAN_ENTERPRISE = "ENTERPRISE"

# Billing cycle lengths in days
BILLING_CYCLE_DAYS = {
    "DAILY": 1,
    "MONTHLY": 30,
    "YEARLY": 365,
}

DEFAULT_CURRENCY = "GHS"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,  # Allow both field name and alias
        extra="ignore",
    )

    # Paystack billing configuration
    paystack_secret_key: Optional[str] = Field(default=None, alias="PAYSTACK_SECRET_KEY")
    paystack_public_key: Optional[str] = Field(default=None, alias="PAYSTACK_PUBLIC_KEY")
    paystack_base_url: str = Field(default="https://api.paystack.co", alias="PAYSTACK_BASE_URL")

    # Infrastructure configuration
    database_url: Optional[str] = Field(default="sqlite+aiosqlite:///./tailorflow.db", alias="DATABASE_URL")

    # Frontend configuration
    frontend_url: Optional[str] = Field(default="http://localhost:5173", alias="FRONTEND_URL")

    # Render.com deployment configuration
    render: Optional[str] = Field(default=None, alias="RENDER")

    # Environment configuration
    env: Optional[str] = Field(default=None, alias="ENV")

    # Trial lifecycle
    trial_days: int = Field(default=3, alias="TRIAL_DAYS")
    reminder_window_hours: int = Field(default=24, alias="REMINDER_WINDOW_HOURS")
    trial_job_interval_seconds: int = Field(default=3600, alias="TRIAL_JOB_INTERVAL_SECONDS")
    trial_job_enabled: bool = Field(default=True, alias="TRIAL_JOB_ENABLED")
    trial_store_dir: Path = Field(default=Path("./data/trials"), alias="TRIAL_STORE_DIR")


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.render) or bool(settings.env and settings.env.lower() == "production")
