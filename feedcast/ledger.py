"""
In-memory publish ledger: one record per (feed_id, item_id) ever attempted.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from feedcast.models import Item, PublishOutcome, PublishRecord

logger = logging.getLogger(__name__)


class PublishLedger:
    def __init__(self, records: Optional[Iterable[PublishRecord]] = None) -> None:
        self._lock = threading.Lock()
        self._records: List[PublishRecord] = []
        self._index: Dict[Tuple[str, str], PublishRecord] = {}
        if records:
            self.load(records)

    def load(self, records: Iterable[PublishRecord]) -> None:
        with self._lock:
            self._records = []
            self._index = {}
            for record in records:
                if record.key in self._index:
                    logger.debug("Skipping duplicate ledger entry %s", record.key)
                    continue
                self._records.append(record)
                self._index[record.key] = record

    def is_published(self, feed_id: str, item_id: str) -> bool:
        with self._lock:
            return (feed_id, item_id) in self._index

    def record(
        self,
        item: Item,
        outcomes: List[PublishOutcome],
        now: Optional[datetime] = None,
    ) -> PublishRecord:
        """Store the attempt regardless of how many destinations succeeded."""
        record = PublishRecord(
            item_id=item.id,
            feed_id=item.feed_id,
            published_at=now or datetime.now(timezone.utc),
            outcomes=list(outcomes),
        )
        with self._lock:
            existing = self._index.get(record.key)
            if existing is not None:
                return existing
            self._records.append(record)
            self._index[record.key] = record
        logger.info(
            "Recorded publication: %s (%d/%d successful)",
            item.title,
            record.success_count,
            len(record.outcomes),
        )
        return record

    def prune(self, retention: timedelta, now: Optional[datetime] = None) -> int:
        cutoff = (now or datetime.now(timezone.utc)) - retention
        with self._lock:
            kept = [record for record in self._records if record.published_at >= cutoff]
            removed = len(self._records) - len(kept)
            self._records = kept
            self._index = {record.key: record for record in kept}
        if removed:
            logger.info("Cleaned up %d old published posts", removed)
        return removed

    def records(self) -> List[PublishRecord]:
        with self._lock:
            return list(self._records)

    def count(self, feed_id: Optional[str] = None) -> int:
        with self._lock:
            if feed_id is None:
                return len(self._records)
            return sum(1 for record in self._records if record.feed_id == feed_id)
