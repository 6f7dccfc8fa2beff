"""
Centralised process settings for feedcast (env-first, code-light).

The configuration file describes feeds and publishers; these values describe
how this process runs them.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class FeedcastSettings:
    config_path: Path
    data_dir_override: Optional[Path]
    log_level: str
    log_file: Optional[Path]
    publish_delay_seconds: float
    parallel_dispatch: bool
    http_timeout_seconds: float
    user_agent: str


def _float_from_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = float(raw)
        return value if value >= 0 else default
    except ValueError:
        logger.warning("Invalid number for %s=%s; using default %s", key, raw, default)
        return default


def _bool_from_env(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or str(raw).strip() == "":
        return default
    token = raw.strip().lower()
    if token in {"1", "true", "yes", "on"}:
        return True
    if token in {"0", "false", "no", "off"}:
        return False
    logger.warning("Invalid boolean for %s=%s; using default %s", key, raw, default)
    return default


def _path_from_env(key: str) -> Optional[Path]:
    raw = os.getenv(key)
    return Path(raw) if raw and raw.strip() else None


def load_settings(config_path: Optional[str] = None) -> FeedcastSettings:
    return FeedcastSettings(
        config_path=Path(config_path) if config_path else (_path_from_env("FEEDCAST_CONFIG") or Path("config.yaml")),
        data_dir_override=_path_from_env("FEEDCAST_DATA_DIR"),
        log_level=(os.getenv("FEEDCAST_LOG_LEVEL") or "INFO").upper(),
        log_file=_path_from_env("FEEDCAST_LOG_FILE"),
        publish_delay_seconds=_float_from_env("FEEDCAST_PUBLISH_DELAY", 2.0),
        parallel_dispatch=_bool_from_env("FEEDCAST_PARALLEL_DISPATCH", False),
        http_timeout_seconds=_float_from_env("FEEDCAST_HTTP_TIMEOUT", 20.0),
        user_agent=os.getenv("FEEDCAST_USER_AGENT") or "feedcast/1.0 (+https://github.com/feedcast/feedcast)",
    )
