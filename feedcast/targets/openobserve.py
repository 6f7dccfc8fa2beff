"""
OpenObserve target: ships each item as a structured log entry to a stream.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from feedcast.models import Item
from feedcast.targets.base import HttpTarget


class OpenObserveTarget(HttpTarget):
    kind = "openobserve"

    def __init__(
        self,
        id: str,
        url: str,
        organization: str,
        stream_name: str,
        access_token: str,
        clock: Optional[Callable[[], datetime]] = None,
        **kwargs,
    ) -> None:
        super().__init__(id, **kwargs)
        self.url = url.rstrip("/")
        self.organization = organization
        self.stream_name = stream_name
        self.access_token = access_token
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def publish(self, item: Item) -> str:
        entry = {
            "timestamp": self.clock().isoformat(),
            "level": "INFO",
            "source": "feedcast",
            "feed_id": item.feed_id,
            "title": item.title,
            "description": item.body,
            "link": item.url,
            "published": item.published_at.isoformat(),
            "guid": item.id,
            "formatted_message": self.render(item),
        }
        # access_token is the pre-encoded basic credential from the OpenObserve UI
        self._request(
            "POST",
            f"{self.url}/api/{self.organization}/{self.stream_name}/_json",
            json=[entry],
            headers={"Authorization": f"Basic {self.access_token}"},
        )
        return f"Published to OpenObserve: {item.id}"
