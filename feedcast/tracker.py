"""
Per-feed tracking: cadence, watermark, retry/backoff and the item selection policy.
"""
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from feedcast.adapters.base import SourceAdapter
from feedcast.errors import FetchError
from feedcast.models import ChangeDetectionState, FeedDescriptor, FeedType, FetchKind, Item

logger = logging.getLogger(__name__)

MAX_ITEMS_PER_CHECK = 2


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Seconds to wait after the zero-based ``attempt`` failed."""
    return base_delay * (2 ** attempt)


class FeedTracker:
    """
    Owns one feed's check cadence and the newest ``published_at`` it has accounted for.

    Tracker state only changes after a successful fetch; a failed check leaves
    the cache, watermark and last-check time exactly as they were.
    """

    def __init__(
        self,
        descriptor: FeedDescriptor,
        adapter: SourceAdapter,
        state: Optional[ChangeDetectionState] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
        lock: Optional[threading.Lock] = None,
    ) -> None:
        self.descriptor = descriptor
        self.adapter = adapter
        self.state = state or ChangeDetectionState()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.sleep = sleep
        self._lock = lock or threading.Lock()
        self.last_checked_at: Optional[datetime] = None
        self.high_watermark: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.consecutive_failures = 0

    @property
    def feed_id(self) -> str:
        return self.descriptor.id

    def effective_interval(self, default_interval: timedelta) -> timedelta:
        return self.descriptor.poll_interval or default_interval

    def should_check(self, default_interval: timedelta, now: Optional[datetime] = None) -> bool:
        if not self.descriptor.enabled:
            return False
        with self._lock:
            last_checked = self.last_checked_at
        if last_checked is None:
            return True
        now = now or self.clock()
        return now - last_checked >= self.effective_interval(default_interval)

    def fetch_with_retry(self, now: Optional[datetime] = None) -> List[Item]:
        """
        Fetch with exponential backoff between retryable failures.

        ``now`` is the time the check started; it becomes ``last_checked_at`` so
        the cadence does not drift by however long the fetch took.
        """
        now = now or self.clock()
        attempts = self.descriptor.max_retries + 1
        for attempt in range(attempts):
            try:
                items = self.fetch_once(now)
            except FetchError as exc:
                final = not exc.retryable or attempt + 1 >= attempts
                if final:
                    if exc.retryable:
                        logger.error(
                            "Feed %s failed after %d attempts: %s",
                            self.descriptor.display_name,
                            attempts,
                            exc,
                        )
                    else:
                        logger.error("Feed %s failed permanently: %s", self.descriptor.display_name, exc)
                    with self._lock:
                        self.last_error = str(exc)
                        self.consecutive_failures += 1
                    raise
                delay = backoff_delay(attempt, self.descriptor.retry_base_delay)
                logger.warning(
                    "Attempt %d/%d failed for feed %s: %s. Retrying in %.1fs",
                    attempt + 1,
                    attempts,
                    self.descriptor.display_name,
                    exc,
                    delay,
                )
                self.sleep(delay)
            else:
                with self._lock:
                    self.last_error = None
                    self.consecutive_failures = 0
                return items
        return []

    def fetch_once(self, now: Optional[datetime] = None) -> List[Item]:
        now = now or self.clock()
        with self._lock:
            state = self.state
        outcome = self.adapter.fetch(self.descriptor, state)

        if outcome.kind is FetchKind.NOT_MODIFIED:
            with self._lock:
                self.last_checked_at = now
            return []

        if outcome.kind is FetchKind.UNCHANGED:
            with self._lock:
                self.state = outcome.state
                self.last_checked_at = now
            return []

        with self._lock:
            previous_watermark = self.high_watermark
            if self.descriptor.type is FeedType.VIDEO_CHANNEL:
                selected = _select_video(outcome.items)
            else:
                selected = _select_syndication(outcome.items, previous_watermark)
            self.high_watermark = _raise_watermark(previous_watermark, outcome.items)
            self.state = outcome.state
            self.last_checked_at = now

        logger.info(
            "Feed %s: %d entries fetched, %d selected",
            self.descriptor.display_name,
            len(outcome.items),
            len(selected),
        )
        return selected


def _raise_watermark(current: Optional[datetime], items: List[Item]) -> Optional[datetime]:
    if not items:
        return current
    newest = max(item.published_at for item in items)
    if current is None or newest > current:
        return newest
    return current


def _select_syndication(items: List[Item], watermark: Optional[datetime]) -> List[Item]:
    if watermark is not None:
        items = [item for item in items if item.published_at > watermark]
    ordered = sorted(items, key=lambda item: item.published_at, reverse=True)
    return ordered[:MAX_ITEMS_PER_CHECK]


def _select_video(items: List[Item]) -> List[Item]:
    # newest two, then published oldest first
    newest = sorted(items, key=lambda item: item.published_at, reverse=True)[:MAX_ITEMS_PER_CHECK]
    return sorted(newest, key=lambda item: item.published_at)
