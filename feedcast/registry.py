"""
Feed registry: holds every tracker, decides which are due and runs them one by one.
"""
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from feedcast.adapters.base import AdapterRegistry
from feedcast.errors import FetchError
from feedcast.models import ChangeDetectionState, FeedDescriptor, FeedResult
from feedcast.tracker import FeedTracker

logger = logging.getLogger(__name__)


class FeedRegistry:
    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._trackers: Dict[str, FeedTracker] = {}

    @classmethod
    def from_descriptors(
        cls,
        descriptors: Iterable[FeedDescriptor],
        adapters: AdapterRegistry,
        cache: Optional[Mapping[str, ChangeDetectionState]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "FeedRegistry":
        registry = cls(clock=clock)
        cache = cache or {}
        for descriptor in descriptors:
            registry.add(
                FeedTracker(
                    descriptor,
                    adapters.for_type(descriptor.type),
                    state=cache.get(descriptor.id),
                    clock=registry.clock,
                    sleep=sleep,
                    lock=registry._lock,
                )
            )
        logger.info("Feed registry initialised with %d feeds (%d enabled)", len(registry._trackers), registry.enabled_count())
        return registry

    def add(self, tracker: FeedTracker) -> None:
        with self._lock:
            if tracker.feed_id in self._trackers:
                raise ValueError(f"Feed '{tracker.feed_id}' already registered")
            self._trackers[tracker.feed_id] = tracker

    def get(self, feed_id: str) -> Optional[FeedTracker]:
        with self._lock:
            return self._trackers.get(feed_id)

    def trackers(self) -> List[FeedTracker]:
        with self._lock:
            return list(self._trackers.values())

    def enabled_count(self) -> int:
        return sum(1 for tracker in self.trackers() if tracker.descriptor.enabled)

    def run_sweep(self, default_interval: timedelta) -> List[FeedResult]:
        """
        Check every due tracker in turn. Trackers that are not due produce no result;
        a failing feed yields a result carrying its error and never stops the others.
        """
        now = self.clock()
        results: List[FeedResult] = []
        for tracker in self.trackers():
            if not tracker.should_check(default_interval, now):
                logger.debug("Feed %s not due yet", tracker.descriptor.display_name)
                continue
            logger.info("Checking feed: %s", tracker.descriptor.display_name)
            try:
                items = tracker.fetch_with_retry(now)
            except FetchError as exc:
                results.append(FeedResult(feed_id=tracker.feed_id, error=exc))
                continue
            except Exception as exc:  # pragma: no cover - safety net
                logger.exception("Unexpected error checking feed %s", tracker.descriptor.display_name)
                results.append(FeedResult(feed_id=tracker.feed_id, error=exc))
                continue
            if items:
                logger.info("Found %d new items in feed %s", len(items), tracker.descriptor.display_name)
            results.append(FeedResult(feed_id=tracker.feed_id, items=items))
        return results

    def snapshot_cache(self) -> Dict[str, ChangeDetectionState]:
        with self._lock:
            return {feed_id: tracker.state for feed_id, tracker in self._trackers.items()}

    def restore_cache(self, cache: Mapping[str, ChangeDetectionState]) -> None:
        with self._lock:
            for feed_id, state in cache.items():
                tracker = self._trackers.get(feed_id)
                if tracker is not None:
                    tracker.state = state
