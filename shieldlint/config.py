"""Scan configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shieldlint.analyzers.results import Category, Severity


class Settings(BaseSettings):
    """Scan settings loaded from ``SHIELDLINT_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SHIELDLINT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Discovery
    paths_analyze: list[str] = ["app", "config", "database", "routes", "resources", "bootstrap"]
    excluded_paths: list[str] = ["vendor/*", "node_modules/*", "storage/*", "bootstrap/cache/*"]

    # Rule selection
    disabled_analyzers: list[str] = []
    enabled_categories: list[Category] = []
    dont_report: list[str] = []
    fail_on: Severity = Severity.CRITICAL

    # Execution
    max_workers: int = 1
    rule_timeout_seconds: Optional[float] = None

    # Live header probe
    app_url: Optional[str] = None
    header_probe_timeout: float = 5.0
    header_probe_verify: bool = True

    # Per-rule option overrides, keyed by rule id
    rules: dict[str, dict[str, Any]] = {}

    # Findings to drop, keyed by rule id: [{"path": ..., "message_pattern": ...}]
    ignore_errors: dict[str, list[dict[str, Any]]] = {}

    # Extra import aliases for facades, e.g. {"Database": "DB"}
    facade_aliases: dict[str, str] = {}

    @field_validator("max_workers", mode="after")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_workers must be at least 1")
        return v

    @field_validator("rule_timeout_seconds", mode="after")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("rule_timeout_seconds must be positive")
        return v

    def rule_options(self, rule_id: str) -> dict[str, Any]:
        """Option overrides for one rule."""
        return dict(self.rules.get(rule_id, {}))

    def is_enabled(self, rule_id: str, category: Category) -> bool:
        if rule_id in self.disabled_analyzers:
            return False
        return not self.enabled_categories or category in self.enabled_categories


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
