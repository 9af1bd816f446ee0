# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Application configuration via environment variables and .env files."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_list(v: object) -> list[str]:
    if isinstance(v, str):
        return [p.strip() for p in v.replace("\n", ",").split(",") if p.strip()]
    return v if isinstance(v, list) else []


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SITEWARDEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )

    # Site layout
    site_root: Path = Path(".")
    home_dir: Path | None = None  # defaults to the parent of site_root
    own_dir_name: str = "sitewarden"
    backup_dir_name: str = "sitewarden-backups"
    own_option_prefix: str = "sitewarden_"
    self_dir: Path | None = None  # defaults to the installed package directory

    # Site metadata
    site_name: str = ""
    site_url: str = ""
    site_locale: str = "en_US"
    core_version: str = ""

    # Persistence
    state_db_path: Path = Path("sitewarden.db")
    site_db_path: Path | None = None
    table_prefix: str = "wp_"

    # Scan behaviour
    max_execution_time: int = 30
    max_read_mb: int = 5
    max_files: int = 500_000
    exclude_paths: list[str] = [
        "wp-content/uploads",
        "wp-content/cache",
        "wp-content/backup",
    ]
    include_paths: list[str] = []
    ignored_paths: list[str] = []
    report_low_confidence: bool = False
    external_scan_enabled: bool = False
    database_deep_scan_enabled: bool = False
    lock_ttl: int = 10

    @field_validator("exclude_paths", mode="before")
    @classmethod
    def _parse_exclude_paths(cls, v: object) -> list[str]:
        return _split_list(v)

    @field_validator("include_paths", mode="before")
    @classmethod
    def _parse_include_paths(cls, v: object) -> list[str]:
        return _split_list(v)

    @field_validator("ignored_paths", mode="before")
    @classmethod
    def _parse_ignored_paths(cls, v: object) -> list[str]:
        return _split_list(v)

    # AI verdict (Anthropic)
    ai_deep_scan_enabled: bool = False
    ai_veto_enabled: bool = True
    anthropic_api_key: str = ""
    llm_model: str = "claude-sonnet-4-6"
    llm_max_tokens: int = 2048
    llm_temperature: float = 0.0
    llm_timeout: float = 90.0

    # Pattern / integrity service
    pattern_service_url: str = ""
    pattern_service_timeout: float = 15.0
    core_checksums_url: str = "https://api.wordpress.org/core/checksums/1.0/"
    core_checksums_timeout: float = 30.0

    # Detection tuning
    global_score_threshold: int = 20
    confidence_high: int = 85
    confidence_medium: int = 55
    confidence_low: int = 20
    cluster_context_lines: int = 6
    cluster_merge_gap: int = 10
    spam_merge_chars: int = 400
    audit_min_signals: int = 2
    audit_recent_days: int = 45

    # Adaptive chunking
    chunk_initial: int = 50
    chunk_min: int = 10
    chunk_external: int = 10
    chunk_grow: float = 1.8
    chunk_shrink: float = 0.6
    chunk_gentle_up: float = 1.2
    chunk_gentle_down: float = 0.8

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def resolved_home_dir(self) -> Path:
        if self.home_dir is not None:
            return self.home_dir
        return self.site_root.resolve().parent

    @property
    def safe_time(self) -> float:
        """Seconds a tick may spend before persisting its cursor."""
        return float(max(self.max_execution_time, 6) - 5)


def get_settings() -> Settings:
    return Settings()
