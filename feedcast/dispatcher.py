"""
Fan an item out to its destinations, one independent outcome per destination.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from feedcast.errors import DispatchError
from feedcast.models import Item, PublishOutcome
from feedcast.targets.base import PublishingTarget

logger = logging.getLogger(__name__)


class TargetDispatcher:
    def __init__(
        self,
        targets: Dict[str, PublishingTarget],
        parallel: bool = False,
        max_workers: int = 4,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.targets = dict(targets)
        self.parallel = parallel
        self.max_workers = max_workers
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def dispatch(self, item: Item, destination_ids: Sequence[str]) -> List[PublishOutcome]:
        if not destination_ids:
            return []
        if self.parallel and len(destination_ids) > 1:
            workers = min(self.max_workers, len(destination_ids))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                # map keeps destination order
                return list(executor.map(lambda dest: self._publish_one(item, dest), destination_ids))
        return [self._publish_one(item, dest) for dest in destination_ids]

    def _publish_one(self, item: Item, destination_id: str) -> PublishOutcome:
        target = self.targets.get(destination_id)
        if target is None:
            error = DispatchError(f"Publisher not found: {destination_id}")
            logger.error("%s", error)
            return PublishOutcome(destination_id, False, str(error), self.clock())
        try:
            message = target.publish(item)
        except Exception as exc:
            logger.error("Failed to publish to %s: %s", destination_id, exc)
            return PublishOutcome(destination_id, False, str(exc), self.clock())
        logger.info("Successfully published to %s: %s", destination_id, message)
        return PublishOutcome(destination_id, True, message, self.clock())
