"""Configuration management using Pydantic Settings."""

from typing import Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

from .event.severity import E_ALL, error_type_from_name


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "DokuWiki"
    app_version: Optional[str] = None
    server_name: Optional[str] = None
    debug: bool = False
    log_level: str = "INFO"

    # Server (browser capture endpoint)
    host: str = "0.0.0.0"
    port: int = 8000

    # Sentry
    dsn: str = ""  # Empty = capture disabled
    env: Optional[str] = None  # Environment label to tell instances apart
    errors: int = E_ALL  # Bitmask of error classifications to report
    send_timeout: float = 4.0  # Seconds, keep it short

    # Retry queue
    cache_dir: str = "./data/cache"
    retry_interval_seconds: int = 300

    # Module fingerprinting
    plugin_dir: Optional[str] = None
    template_dir: Optional[str] = None
    template: Optional[str] = None

    # Redis (Celery broker for the retry task)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0

    @field_validator("errors", mode="before")
    @classmethod
    def parse_errors(cls, v: Any) -> int:
        """Parse errors from an int, or a comma-separated list of names or ints."""
        if v is None or v == "":
            return E_ALL
        if isinstance(v, int):
            return v
        if isinstance(v, (list, tuple)):
            v = ",".join(str(x) for x in v)
        if isinstance(v, str):
            result = 0
            for x in v.split(","):
                x = x.strip()
                if not x:
                    continue
                if x.lstrip("-").isdigit():
                    result |= int(x)
                    continue
                error_type = error_type_from_name(x)
                if error_type is None:
                    raise ValueError(f"Unknown error type: {x}")
                result |= int(error_type)
            return result
        return E_ALL

    @property
    def capture_enabled(self) -> bool:
        return bool(self.dsn.strip())

    class Config:
        env_prefix = "WIKISENTRY_"
        env_file = ".env"
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()
