# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional, Set

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


_BACKEND_ROOT = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _BACKEND_ROOT / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


NON_PROD_SITE_MODES: Set[str] = {
    "local",
    "dev",
    "development",
    "int",
    "stg",
    "stage",
    "staging",
    "preview",
}
PROD_SITE_MODES: Set[str] = {"prod", "production", "live"}


def _classify_site_mode(raw_site_mode: str | None) -> tuple[str, bool, bool]:
    """Return normalized site mode with production/non-prod classification."""

    normalized = (raw_site_mode or "").strip().lower()
    is_prod = normalized in PROD_SITE_MODES
    is_non_prod = normalized in NON_PROD_SITE_MODES
    return normalized, is_prod, is_non_prod


class Settings(BaseSettings):
    # Database
    database_url_raw: str = Field(
        default=f"sqlite:///{_BACKEND_ROOT / 'quinielas.db'}",
        alias="database_url",
        description="SQLAlchemy URL for the primary relational store",
    )
    test_database_url_raw: str = Field(
        default="",
        alias="test_database_url",
        description="SQLAlchemy URL used by the test suite (defaults to a temp SQLite file)",
    )
    sql_echo: bool = Field(default=False, description="Echo SQL statements to the log")
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=10, ge=0)

    # Legacy flags for backward compatibility
    is_testing: bool = False  # Set to True when running tests

    # Environment (derived from SITE_MODE)
    site_mode: str = Field(default_factory=lambda: os.getenv("SITE_MODE", "local"))
    environment: str = (
        "production" if _classify_site_mode(os.getenv("SITE_MODE", "local"))[1] else "development"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )

    # Admission credentials
    invitation_ttl_hours: int = Field(
        default=72,
        ge=1,
        description="Default lifetime of an email invitation when no expiry is supplied",
    )
    invite_code_length: int = Field(default=8, ge=6, le=16)
    invite_code_generation_attempts: int = Field(
        default=3,
        ge=1,
        description="Candidate codes drawn per requested code before giving up",
    )

    # Auditing / metrics
    audit_enabled: bool = Field(default=True, description="Write audit entries for admissions")
    metrics_enabled: bool = Field(default=True, description="Record Prometheus service metrics")

    production_database_indicators: list[str] = Field(
        default_factory=lambda: ["prod", "production", "supabase.co"]
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,  # allows DATABASE_URL to match database_url
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("test_database_url_raw")
    @classmethod
    def validate_test_database(cls, v: str) -> str:
        """Refuse test URLs that look like a production database."""
        if not v:
            return v
        lowered = v.lower()
        for indicator in ("prod", "production", "supabase.co"):
            if indicator in lowered:
                raise ValueError(
                    f"Test database URL contains production indicator '{indicator}'. "
                    f"Tests must not use production databases!"
                )
        return v

    def get_database_url(self) -> str:
        """Get the appropriate database URL based on context."""
        if (self.is_testing or is_running_tests()) and self.test_database_url_raw:
            return self.test_database_url_raw
        return self.database_url_raw

    def is_production_database(self, url: Optional[str] = None) -> bool:
        """Check if a database URL appears to be a production database."""
        check_url = url or self.database_url_raw or ""
        return any(
            indicator in check_url.lower() for indicator in self.production_database_indicators
        )

    @property
    def database_url(self) -> str:
        return self.get_database_url()

    @property
    def test_database_url(self) -> str:
        return self.test_database_url_raw


settings = Settings()
logger.debug(
    "[CONFIG] site_mode=%s environment=%s audit_enabled=%s",
    settings.site_mode,
    settings.environment,
    settings.audit_enabled,
)
