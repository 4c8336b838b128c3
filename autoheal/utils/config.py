# autoheal/utils/config.py
from __future__ import annotations

import functools
from datetime import timedelta
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------- Enums ----------

class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _default_cache_dir() -> Path:
    return Path.home() / ".autoheal" / "cache"


# ---------- Settings ----------

class Settings(BaseSettings):
    """
    Central configuration for the selector cache and DOM optimizer.

    Values load in this order of precedence:
      1) Environment variables (prefixed with AUTOHEAL_)
      2) .env file in project root
      3) Defaults below
    """

    # ---- Selector cache ----
    CACHE_DIR: Path = Field(default_factory=_default_cache_dir)
    CACHE_MAX_SIZE: int = Field(default=10_000, ge=1, description="Maximum live entries in memory")
    CACHE_EXPIRE_AFTER_WRITE_HOURS: float = Field(default=24.0, gt=0)
    CACHE_EXPIRE_AFTER_ACCESS_HOURS: float = Field(default=2.0, gt=0)
    CACHE_SHUTDOWN_GRACE_SECONDS: float = Field(default=5.0, ge=0, description="Max wait for the final flush")

    # ---- DOM optimizer ----
    DOM_MAX_HTML_CHARS: int = Field(default=100_000, ge=1)
    DOM_ATTRIBUTE_FREQUENCY_THRESHOLD: int = Field(default=2, ge=1)
    DOM_MAX_TEXT_LENGTH: int = Field(default=120, ge=1)
    DOM_MAX_DEPTH: int = Field(default=14, ge=1)

    # ---- Logging ----
    LOG_LEVEL: LogLevel = Field(default=LogLevel.INFO)
    LOG_TO_FILE: bool = Field(default=False)
    LOG_FILE: Path = Field(default=Path("./autoheal.log"))
    COLORIZED_OUTPUT: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_prefix="AUTOHEAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("CACHE_DIR", "LOG_FILE", mode="before")
    @classmethod
    def _coerce_to_path(cls, v):
        if isinstance(v, Path):
            return v
        return Path(str(v)).expanduser() if v is not None else v

    @field_validator("LOG_FILE", mode="after")
    @classmethod
    def _absolutize_log_file(cls, v: Path):
        return v if v.is_absolute() else Path.cwd() / v

    def cache_config(self) -> "CacheConfig":
        return CacheConfig.from_settings(self)


# --------- Public accessor (memoized) ---------

@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache settings once per process.
    Call `get_settings.cache_clear()` if you need to reload after changing env.
    """
    return Settings()


# --------- Value object handed to the cache ---------

class CacheConfig(BaseModel):
    """Everything the tiered cache needs; it never reads the environment itself."""

    cache_dir: Path = Field(default_factory=_default_cache_dir)
    maximum_size: int = Field(default=10_000, ge=1)
    expire_after_write: timedelta = Field(default=timedelta(hours=24))
    expire_after_access: timedelta = Field(default=timedelta(hours=2))
    shutdown_grace: timedelta = Field(default=timedelta(seconds=5))

    @classmethod
    def from_settings(cls, s: Settings) -> "CacheConfig":
        return cls(
            cache_dir=s.CACHE_DIR,
            maximum_size=s.CACHE_MAX_SIZE,
            expire_after_write=timedelta(hours=s.CACHE_EXPIRE_AFTER_WRITE_HOURS),
            expire_after_access=timedelta(hours=s.CACHE_EXPIRE_AFTER_ACCESS_HOURS),
            shutdown_grace=timedelta(seconds=s.CACHE_SHUTDOWN_GRACE_SECONDS),
        )
