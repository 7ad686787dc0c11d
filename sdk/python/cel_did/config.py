"""
Configuration using Pydantic Settings.

Values come from ``CEL_``-prefixed environment variables (or a ``.env``
file). They are read once per process; the signer's cryptosuite parameters
are then fixed in an immutable ``SuiteConfig`` (see ``cel_did.signing``).
"""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # ==========================================================================
    # Core
    # ==========================================================================
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ==========================================================================
    # Signing service
    # ==========================================================================
    c14n: Literal["JCS", "RDFC"] = "JCS"
    verification_method: str | None = Field(
        default=None,
        description="Verification method URL placed into every proof",
    )
    signing_timeout: float = Field(default=10.0, gt=0, description="Seconds")

    # ==========================================================================
    # Resolver
    # ==========================================================================
    fetch_timeout: float = Field(default=10.0, gt=0, description="Seconds")
    heartbeat_interval: timedelta = Field(default=timedelta(days=1))
    heartbeat_tolerance: timedelta = Field(default=timedelta(0))
    witness_threshold: int = Field(default=0, ge=0)
    witnesses: list[str] | None = Field(
        default=None,
        description="Approved witness DIDs; any did:key counts when unset",
    )
    cache_size: int = Field(default=1024, ge=0, description="0 disables the cache")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings."""
    return Settings()
