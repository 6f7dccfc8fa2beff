"""Mastodon target: posts a status with an application access token."""
from __future__ import annotations

from feedcast.models import Item
from feedcast.targets.base import HttpTarget


class MastodonTarget(HttpTarget):
    kind = "mastodon"

    def __init__(self, id: str, server_url: str, access_token: str, visibility: str = "public", **kwargs) -> None:
        super().__init__(id, **kwargs)
        self.server_url = server_url.rstrip("/")
        self.access_token = access_token
        self.visibility = visibility

    def publish(self, item: Item) -> str:
        resp = self._request(
            "POST",
            f"{self.server_url}/api/v1/statuses",
            json={"status": self.render(item), "visibility": self.visibility},
            headers={"Authorization": f"Bearer {self.access_token}"},
        )
        return f"Published to Mastodon: {self._json(resp).get('id', 'unknown')}"
