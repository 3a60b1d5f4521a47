from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

# Resolve the project root .env file (core/../.env)
_THIS_DIR = Path(__file__).resolve().parent          # core/
_PROJECT_ROOT = _THIS_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

class Settings(BaseSettings):
    # Server config
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000
    ENVIRONMENT: str = "development"

    # Frontend config
    FRONTEND_URL: str = "http://localhost:5173"

    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""

    # JWT Auth (access tokens issued by the identity layer)
    JWT_SECRET: str = "telemed-access-token-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_HOURS: int = 24

    # Redis config (for rate limiting)
    REDIS_URL: str = "redis://localhost:6379"

    # Real-time session credentials
    RTC_APP_ID: str = "telemed-rtc"
    RTC_APP_SECRET: str = "telemed-rtc-secret-key-for-session-token-signing"
    RTC_TOKEN_ALGORITHM: str = "HS256"
    RTC_TOKEN_EXPIRE_MINUTES: int = 30
    RTC_TOKEN_RATE_LIMIT_TIMES: int = 20
    RTC_TOKEN_RATE_LIMIT_SECONDS: int = 60

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
