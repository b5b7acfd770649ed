"""Application configuration powered by Pydantic settings."""

import logging
import os
from typing import Optional, Any
from urllib.parse import urlparse, urlunparse

from pydantic import model_validator, PostgresDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


_ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
_ENV_FILE = ".env" if _ENVIRONMENT not in {"production", "prod"} else None


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(env_file=_ENV_FILE, case_sensitive=True, extra="ignore")

    # --- Database Configuration ---
    DATABASE_URL: Optional[PostgresDsn] = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_DB: Optional[str] = None
    DB_POOL_MIN_CONN: int = 1
    DB_POOL_MAX_CONN: int = 20

    @model_validator(mode='before')
    @classmethod
    def assemble_db_connection(cls, v: Any) -> Any:
        if isinstance(v, dict) and 'DATABASE_URL' not in v:
            # If DATABASE_URL is not provided, build it from components
            user = v.get("POSTGRES_USER")
            password = v.get("POSTGRES_PASSWORD")
            host = v.get("POSTGRES_HOST", "localhost")
            port = v.get("POSTGRES_PORT", 5432)
            db = v.get("POSTGRES_DB")
            if all([user, password, host, port, db]):
                v['DATABASE_URL'] = str(PostgresDsn.build(
                    scheme="postgresql",
                    username=user,
                    password=password,
                    host=host,
                    port=int(port),
                    path=f"{db}",
                ))
        return v

    # --- General API Configuration ---
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    API_HOST: str = "127.0.0.1"
    API_PORT: int = 5000
    DEBUG: bool = False
    CLIENT_URL: str = "http://localhost:3000"
    CORS_ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5001"

    # --- Authentication ---
    # Tokens are issued elsewhere; this service only verifies them.
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    AUTH_OPTIONAL: bool = False

    # --- LLM Configuration ---
    LLM_PROVIDER: str = "openai"
    # Model for LLM_PROVIDER; unset uses that provider's default model.
    LLM_MODEL: Optional[str] = None
    OPENAI_API_KEY: Optional[str] = None
    GEMINI_API_KEY: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None
    LLM_TIMEOUT: float = 20.0
    LLM_TEMPERATURE: float = 0.8
    LLM_MAX_TOKENS: int = 300

    # --- Simulated counterpart replies ---
    AUTO_REPLY_ENABLED: bool = True
    AUTO_REPLY_MIN_DELAY_MS: int = 1000
    AUTO_REPLY_MAX_DELAY_MS: int = 3000
    AUTO_REPLY_HISTORY_LIMIT: int = 20
    REPLY_LOCK_BACKEND: str = "postgres"  # "postgres" or "redis"
    REPLY_LOCK_TTL_SECONDS: int = 60

    # --- Redis ---
    REDIS_URL: Optional[str] = None

    # --- Email notifications ---
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM: str = "BroughtBy <onboarding@resend.dev>"
    # Presence is per process: with REALTIME_REDIS_FANOUT a recipient connected
    # only to another worker counts as offline here and is still e-mailed.
    NOTIFY_OFFLINE_ONLY: bool = True
    EMAIL_PREVIEW_LENGTH: int = 140

    # --- Monitoring Configuration ---
    ENABLE_METRICS: bool = True

    # --- Rate Limiting ---
    RATE_LIMIT_PER_MINUTE: int = 60

    # --- Real-time Delivery Guardrails ---
    REALTIME_MAX_CONNECTIONS_PER_ROOM: int = 64
    REALTIME_SEND_TIMEOUT_SECONDS: float = 3.0
    REALTIME_SEND_MAX_RETRIES: int = 1
    REALTIME_SEND_RETRY_BACKOFF_SECONDS: float = 0.5
    REALTIME_DISCONNECT_ON_SLOW_CONSUMER: bool = True
    REALTIME_REDIS_FANOUT: bool = False
    REALTIME_REDIS_CHANNEL: str = "chat_events"

    @model_validator(mode='after')
    def check_delay_bounds(self) -> "Settings":
        if self.AUTO_REPLY_MIN_DELAY_MS < 0 or self.AUTO_REPLY_MAX_DELAY_MS < self.AUTO_REPLY_MIN_DELAY_MS:
            raise ValueError("AUTO_REPLY delay bounds must satisfy 0 <= MIN <= MAX")
        return self



def _rewrite_url_with_overrides(url: str, host: Optional[str], port: Optional[str]) -> str:
    """Rewrite a URL's host/port components while preserving credentials and paths."""

    parsed = urlparse(url)
    userinfo, at, hostport = parsed.netloc.rpartition("@")
    current_host, _, current_port = hostport.partition(":")

    new_host = host or current_host
    new_port = port or current_port

    host_segment = new_host or current_host
    if new_port:
        host_segment = f"{host_segment}:{new_port}"

    if at:
        netloc = f"{userinfo}{at}{host_segment}"
    else:
        netloc = host_segment

    return urlunparse(parsed._replace(netloc=netloc))


def _base_redis_url() -> Optional[str]:
    """Determine the baseline Redis URL before any test overrides are applied."""

    if settings.REDIS_URL:
        return settings.REDIS_URL

    env_url = os.getenv("REDIS_URL")
    if env_url:
        return env_url

    host = os.getenv("REDIS_HOST")
    port = os.getenv("REDIS_PORT")
    if host or port:
        host = host or "localhost"
        port = port or "6379"
        return f"redis://{host}:{port}/0"

    return None


def get_effective_redis_url() -> Optional[str]:
    """Return the Redis URL after applying any runtime test overrides."""

    redis_host = os.getenv("TEST_REDIS_HOST")
    redis_port = os.getenv("TEST_REDIS_PORT")

    base_url = _base_redis_url()

    if redis_host or redis_port:
        if base_url:
            return _rewrite_url_with_overrides(base_url, redis_host, redis_port)

        host = redis_host or "localhost"
        port = redis_port or "6379"
        return f"redis://{host}:{port}/0"

    return base_url


# Global settings instance
settings = Settings()
