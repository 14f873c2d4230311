"""Unified configuration settings for the risk register.

This module provides a centralized Settings class using Pydantic BaseSettings
for loading and validating all environment variables.

All configuration should be accessed through this module:
    from riskreg.settings import get_settings
    settings = get_settings()
"""

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = _PACKAGE_DIR.parent


def _split_csv(value: str) -> List[str]:
    """Split a comma-separated string into a list."""
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Environment variables can be set in a .env file or the process
    environment. Names are case-insensitive and prefixed with ``RISKREG_``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RISKREG_",
        case_sensitive=False,
        extra="ignore",
    )

    # ==================== Entity Store ====================
    store_backend: Literal["memory", "sql"] = Field(
        default="memory",
        description="Entity store implementation, chosen once at startup",
    )
    database_url: str = Field(
        default=f"sqlite:///{PROJECT_ROOT / 'data' / 'riskreg.db'}",
        description="SQLAlchemy URL used when store_backend is 'sql'",
    )

    # ==================== Logging ====================
    log_level: str = Field(
        default="INFO",
        description="Loguru level for the stderr sink",
    )

    # ==================== Approval Workflow ====================
    approval_global_enabled: bool = Field(
        default=False,
        description="Master toggle for four-eye approval",
    )
    approval_require_for_controls: bool = Field(
        default=False,
        description="Control edits require approval unless overridden per entity",
    )
    approval_require_for_risks: bool = Field(default=False)
    approval_require_for_processes: bool = Field(default=False)
    approval_entity_overrides: Dict[str, bool] = Field(
        default_factory=dict,
        description="Per-entity approval overrides (JSON object of entity id -> bool)",
    )
    approval_baseline_check: Literal["off", "warn", "reject"] = Field(
        default="warn",
        description="How approval treats a baseline that no longer matches the live entity",
    )
    pending_retention_days: int = Field(
        default=30,
        ge=1,
        description="Resolved pending changes older than this may be pruned",
    )

    # ==================== Notifications ====================
    notification_webhook_url: str = Field(
        default="",
        description="Webhook receiving notification events; empty logs them instead",
    )
    notification_timeout_seconds: float = Field(default=5.0, gt=0)
    manager_recipient_ids: str = Field(
        default="",
        description="Comma-separated recipient ids notified about new pending changes",
    )

    # ==================== Server Configuration ====================
    allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )
    uvicorn_host: str = Field(default="0.0.0.0")
    uvicorn_port: int = Field(default=8000)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        return str(v).upper() if v else "INFO"

    # ==================== Computed Properties ====================

    @property
    def allowed_origins_list(self) -> List[str]:
        """Get allowed origins as a list."""
        return _split_csv(self.allowed_origins)

    @property
    def manager_recipients(self) -> List[str]:
        """Get manager notification recipients as a list."""
        return _split_csv(self.manager_recipient_ids)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def ensure_database_dir(self) -> None:
        """Create the directory holding a file-based SQLite database."""
        if not self.is_sqlite or ":memory:" in self.database_url:
            return
        db_path = Path(self.database_url.split("///", 1)[-1])
        db_path.parent.mkdir(parents=True, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
