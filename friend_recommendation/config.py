"""
Service configuration.

Values are read from the environment (and a local .env file) once at import.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./friend_recommendation.db")
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    cache_backend: str = os.getenv("CACHE_BACKEND", "memory")  # memory | redis
    cache_key_prefix: str = os.getenv("CACHE_KEY_PREFIX", "")
    cache_default_ttl: int = int(os.getenv("CACHE_DEFAULT_TTL", "3600"))
    batch_size: int = int(os.getenv("RECOMMENDATION_BATCH_SIZE", "50"))
    request_timeout_seconds: Optional[float] = (
        float(os.getenv("REQUEST_TIMEOUT_SECONDS")) if os.getenv("REQUEST_TIMEOUT_SECONDS") else None
    )
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
