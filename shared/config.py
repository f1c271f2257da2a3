# shared/config.py
"""Application configuration.

Defaults are safe for local use; every setting can be overridden through the
environment with ``AppConfig.from_env()``.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name, "true" if default else "false").strip().lower()
    return value in ("1", "true", "yes", "y", "on")


@dataclass
class AppConfig:
    """Settings for the service, the host and the run store"""

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    # Persistence: PostgreSQL when a URL is set, JSON files otherwise
    database_url: Optional[str] = None
    run_store_dir: Path = field(default_factory=lambda: Path(".refactor-runs"))

    # Pipeline
    approval_policy: str = "conservative"
    max_tasks_per_run: int = 10
    minimum_confidence: float = 0.6
    transform_strategy: str = "syntax"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load config with environment variable overrides.

        Environment variables:
            LOG_LEVEL, JSON_LOGS, DATABASE_URL, RUN_STORE_DIR,
            APPROVAL_POLICY, MAX_TASKS_PER_RUN, MIN_CONFIDENCE,
            TRANSFORM_STRATEGY ("syntax" or "text")
        """
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            json_logs=_env_bool("JSON_LOGS", True),
            database_url=os.getenv("DATABASE_URL") or None,
            run_store_dir=Path(os.getenv("RUN_STORE_DIR", ".refactor-runs")),
            approval_policy=os.getenv("APPROVAL_POLICY", "conservative"),
            max_tasks_per_run=int(os.getenv("MAX_TASKS_PER_RUN", "10")),
            minimum_confidence=float(os.getenv("MIN_CONFIDENCE", "0.6")),
            transform_strategy=os.getenv("TRANSFORM_STRATEGY", "syntax").strip().lower(),
        )
