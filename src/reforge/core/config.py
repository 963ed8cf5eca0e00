"""Configuration management for Reforge."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
LOG_FORMATS = {"json", "console"}


class Settings(BaseSettings):
    """Reforge configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="REFORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Deployment record
    record_filename: str = Field(".reforge.json", description="Deployment record file name")

    # Template pack source
    pack_path: Optional[Path] = Field(None, description="Local template pack overriding the bundled one")
    pack_url: Optional[str] = Field(None, description="Remote template pack URL")
    cache_dir: Path = Field(
        Path.home() / ".cache" / "reforge",
        description="Download cache for remote template packs",
    )

    # Fetch limits
    max_pack_size_mb: int = Field(50, description="Maximum template pack size in MB")
    fetch_timeout_seconds: float = Field(30.0, description="Total download timeout across retries")
    fetch_max_retries: int = Field(3, description="Download attempts before giving up")

    # Observability
    log_level: str = Field("INFO", description="Log level")
    log_format: str = Field("console", description="Log renderer: json or console")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level '{v}'")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in LOG_FORMATS:
            raise ValueError(f"Invalid log format '{v}' (expected json or console)")
        return fmt

    @field_validator("record_filename")
    @classmethod
    def validate_record_filename(cls, v: str) -> str:
        name = v.strip()
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            raise ValueError(f"Record filename must be a plain file name, got '{v}'")
        return name

    @field_validator("max_pack_size_mb", "fetch_max_retries")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("fetch_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @property
    def max_pack_size_bytes(self) -> int:
        return self.max_pack_size_mb * 1024 * 1024


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
