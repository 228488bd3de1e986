"""
ReleaseDiff — Service configuration.
Loads .env automatically, then reads all settings from environment variables.
"""

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_env_path)


@dataclass(frozen=True)
class EngineConfig:
    """Limits and defaults applied to every comparison request."""
    max_changes: int
    cache_max_entries: int
    services_branch_prefix: str


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""
    host: str
    port: int
    debug: bool
    log_level: str
    engine: EngineConfig


def _load_config() -> AppConfig:
    return AppConfig(
        host=os.getenv("APP_HOST", "0.0.0.0"),
        port=int(os.getenv("APP_PORT", "8000")),
        debug=os.getenv("APP_DEBUG", "false").lower() == "true",
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        engine=EngineConfig(
            max_changes=int(os.getenv("RELEASEDIFF_MAX_CHANGES", "500")),
            cache_max_entries=int(os.getenv("RELEASEDIFF_CACHE_MAX_ENTRIES", "2048")),
            services_branch_prefix=os.getenv(
                "RELEASEDIFF_SERVICES_BRANCH_PREFIX", "release/"
            ),
        ),
    )


def _validate_config(cfg: AppConfig) -> None:
    """Fail fast on limits that would make every comparison fail."""
    problems: list[str] = []
    if cfg.engine.max_changes <= 0:
        problems.append("RELEASEDIFF_MAX_CHANGES must be a positive integer")
    if cfg.engine.cache_max_entries <= 0:
        problems.append("RELEASEDIFF_CACHE_MAX_ENTRIES must be a positive integer")
    if cfg.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        problems.append(f"LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR or CRITICAL (got {cfg.log_level})")
    if problems:
        print(
            f"\n  ERROR: Invalid configuration: {'; '.join(problems)}\n"
            f"  Check backend/.env or the process environment.\n",
            file=sys.stderr,
        )
        sys.exit(1)


settings = _load_config()
_validate_config(settings)
