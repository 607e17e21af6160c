"""
Configuration management for ACES Inspector.
Uses pydantic-settings for environment variable handling.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Run configuration loaded from environment variables (ACES_ prefix) or .env."""

    model_config = SettingsConfigDict(
        env_prefix="ACES_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # General
    debug: bool = False
    verbose: bool = False
    log_file: Path | None = None

    # Parallelism
    thread_count: int = 20
    min_apps_per_section: int = 5  # fewer than thread_count * this -> don't split
    fitment_processes: bool = False  # run the tree search in worker processes

    # Quantity outliers
    qty_outlier_threshold: float = 1.0  # percent of the group sharing a quantity
    qty_outlier_sample_size: int = 1000  # smaller groups are never evaluated

    # Fitment logic
    tree_config_limit: int = 1000  # max element orderings tried per fitment group
    use_assets_as_fitment: bool = False
    report_all_apps_in_problem_group: bool = False
    disparate_mode: bool = False
    respect_qdb_type: bool = False

    # Diagnostic staging
    staging_dir: Path | None = None
    stage_diagnostics: bool = True
    keep_staged_fragments: bool = False


# Global settings instance
settings = Settings()
