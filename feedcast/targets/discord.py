"""Discord webhook target."""
from __future__ import annotations

from typing import Optional

from feedcast.models import Item
from feedcast.targets.base import HttpTarget
from feedcast.templates import truncate

MAX_CONTENT_LENGTH = 2000


class DiscordTarget(HttpTarget):
    kind = "discord"

    def __init__(self, id: str, webhook_url: str, username: Optional[str] = None, **kwargs) -> None:
        super().__init__(id, **kwargs)
        self.webhook_url = webhook_url
        self.username = username

    def publish(self, item: Item) -> str:
        payload = {"content": truncate(self.render(item), MAX_CONTENT_LENGTH - 3)}
        if self.username:
            payload["username"] = self.username
        # wait=true makes the webhook answer with the created message
        resp = self._request("POST", self.webhook_url, params={"wait": "true"}, json=payload)
        return f"Published to Discord: {self._json(resp).get('id', 'unknown')}"
