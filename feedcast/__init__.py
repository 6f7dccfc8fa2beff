"""
Public API for the feedcast sync-and-publish pipeline.
"""
from __future__ import annotations

import threading
from typing import Any, Dict, Optional

from feedcast.models import SweepSummary
from feedcast.settings import FeedcastSettings, load_settings

SETTINGS: FeedcastSettings = load_settings()
_orchestrator = None
_orchestrator_lock = threading.Lock()


def get_orchestrator():
    """Build the orchestrator from SETTINGS on first use."""
    global _orchestrator
    from feedcast.config_loader import load_app_config, validate_config
    from feedcast.pipeline import build_orchestrator

    with _orchestrator_lock:
        if _orchestrator is None:
            config = load_app_config(SETTINGS.config_path)
            validate_config(config)
            _orchestrator = build_orchestrator(SETTINGS, config)
        return _orchestrator


def run_sweep(dry_run: bool = False) -> SweepSummary:
    return get_orchestrator().run_sweep(dry_run=dry_run)


def run_cleanup(retention_days: Optional[int] = None) -> int:
    return get_orchestrator().run_cleanup(retention_days=retention_days)


def get_status() -> Dict[str, Any]:
    from feedcast.status import build_status

    return build_status(get_orchestrator())
