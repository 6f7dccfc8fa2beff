"""
Status helpers for the feedcast CLI.

The payload lists every feed's tracking state and ledger counts; it never
includes credentials.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from feedcast.pipeline import SweepOrchestrator
from feedcast.tracker import FeedTracker


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _tracker_to_dict(tracker: FeedTracker, published: int) -> Dict[str, Any]:
    descriptor = tracker.descriptor
    return {
        "id": descriptor.id,
        "name": descriptor.display_name,
        "type": descriptor.type.value,
        "enabled": descriptor.enabled,
        "destinations": list(descriptor.destinations),
        "last_checked_at": _iso(tracker.last_checked_at),
        "high_watermark": _iso(tracker.high_watermark),
        "last_error": tracker.last_error,
        "consecutive_failures": tracker.consecutive_failures,
        "published_count": published,
    }


def build_status(orchestrator: SweepOrchestrator) -> Dict[str, Any]:
    ledger = orchestrator.ledger
    feeds = [_tracker_to_dict(tracker, ledger.count(tracker.feed_id)) for tracker in orchestrator.registry.trackers()]
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "feeds": feeds,
        "feed_count": len(feeds),
        "enabled_feeds": orchestrator.registry.enabled_count(),
        "publishers": sorted(orchestrator.dispatcher.targets),
        "ledger": {
            "total_records": ledger.count(),
            "retention_days": orchestrator.retention_days,
        },
        "config": {
            "default_interval_minutes": int(orchestrator.default_interval.total_seconds() // 60),
            "publish_delay_seconds": orchestrator.publish_delay,
            "parallel_dispatch": orchestrator.dispatcher.parallel,
        },
    }
