"""
Application configuration.

Settings come from an optional JSON file and are then overridden by
environment variables, so deployments can keep the file generic.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from evidence_bank.bundles.fetcher import DEFAULT_USER_AGENT, FetcherConfig

ENV_PREFIX = "EVIDENCE_BANK_"


@dataclass
class AppConfig:
    """Runtime settings.

    Attributes:
        db_url: SQLAlchemy URL of the state blob store.
        threshold: Default alert threshold in days for a fresh state.
        fetch_timeout: Per-download timeout in seconds.
        max_workers: Size of the download pool used by bundle exports.
        user_agent: User-Agent header sent with evidence downloads.
        log_level: Root logging level name.
        log_json: Emit JSON log lines instead of plain text.
    """

    db_url: str = "sqlite:///evidence_bank.db"
    threshold: int = 7
    fetch_timeout: float = 30.0
    max_workers: int = 4
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "WARNING"
    log_json: bool = False

    def fetcher_config(self) -> FetcherConfig:
        return FetcherConfig(timeout=self.fetch_timeout, user_agent=self.user_agent)

    def validate(self) -> None:
        if self.threshold < 0:
            raise ValueError(f"threshold must be non-negative, got {self.threshold}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.fetch_timeout <= 0:
            raise ValueError(f"fetch_timeout must be positive, got {self.fetch_timeout}")


_CASTS: dict[str, Any] = {
    "db_url": str,
    "threshold": int,
    "fetch_timeout": float,
    "max_workers": int,
    "user_agent": str,
    "log_level": str,
    "log_json": lambda v: str(v).strip().lower() in ("1", "true", "yes", "on"),
}


def load_config(
    config_path: Optional[str | Path] = None,
    environ: Optional[dict[str, str]] = None,
) -> AppConfig:
    """Load an AppConfig from a JSON file and environment overrides.

    Args:
        config_path: Optional path to a JSON settings file. Unknown keys
            are ignored.
        environ: Environment mapping (defaults to ``os.environ``). Each
            setting can be overridden by ``EVIDENCE_BANK_<NAME>``.

    Returns:
        A validated AppConfig.

    Raises:
        FileNotFoundError: If config_path is given but does not exist.
        json.JSONDecodeError: If the JSON is malformed.
        ValueError: If a value cannot be converted or is out of range.
    """
    env = os.environ if environ is None else environ
    raw: dict[str, Any] = {}

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)

    values: dict[str, Any] = {}
    for name, cast in _CASTS.items():
        env_value = env.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value is not None and env_value != "":
            values[name] = cast(env_value)
        elif name in raw:
            values[name] = cast(raw[name])

    config = AppConfig(**values)
    config.validate()
    return config
