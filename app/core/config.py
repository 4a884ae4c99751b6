# promo-allocation-backend/app/core/config.py

import os
from dotenv import load_dotenv

# Load .env for local development.
# In production (Cloud Run etc.) there is no file and this is a no-op.
load_dotenv()


class Settings:
    # API settings
    API_V1_STR: str = "/api/v1"

    # DB settings (kept in sync with database.py)
    # A direct SQLAlchemy URL wins over the Cloud SQL connector when set
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    DB_USER: str = os.getenv("DB_USER", "postgres")

    # .env names this DB_PASS
    DB_PASSWORD: str = os.getenv("DB_PASS", "password")

    # Cloud SQL connection name, or localhost
    DB_HOST: str = os.getenv("INSTANCE_CONNECTION_NAME", "localhost")
    DB_NAME: str = os.getenv("DB_NAME", "promotions")

    # Calendar windows (DAILY/WEEKLY/MONTHLY) are aligned to this timezone
    APP_TIMEZONE: str = os.getenv("APP_TIMEZONE", "Europe/London")

    # Allocation engine knobs
    LOCK_TIMEOUT_SECONDS: float = float(os.getenv("LOCK_TIMEOUT_SECONDS", "10"))
    DEFAULT_COOLDOWN_HOURS: int = int(os.getenv("DEFAULT_COOLDOWN_HOURS", "24"))
    BONUS_ATTEMPT_EXPIRY_DAYS: int = int(os.getenv("BONUS_ATTEMPT_EXPIRY_DAYS", "7"))
    # SITE_CREDIT units at or below this value count as consolation prizes
    CONSOLATION_CREDIT_MAX: float = float(os.getenv("CONSOLATION_CREDIT_MAX", "5"))
    # Write an audit row for rejected attempts too
    AUDIT_REJECTIONS: bool = os.getenv("AUDIT_REJECTIONS", "true").lower() == "true"
    HISTORY_DEFAULT_LIMIT: int = int(os.getenv("HISTORY_DEFAULT_LIMIT", "50"))

    # Insert demo users and pools on startup when the DB has no pools
    SEED_DEMO_DATA: bool = os.getenv("SEED_DEMO_DATA", "false").lower() == "true"

    # CORS
    CORS_ORIGINS: list = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    ]

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # DEBUG mode
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"


# Exported settings instance
settings = Settings()
