"""Matrix target: sends an m.room.message event with plain and HTML bodies."""
from __future__ import annotations

import uuid
from urllib.parse import quote

from feedcast.models import Item
from feedcast.targets.base import HttpTarget
from feedcast.templates import strip_html


class MatrixTarget(HttpTarget):
    """Sends the rendered template as the HTML body of an ``m.text`` room message."""

    kind = "matrix"

    def __init__(self, id: str, homeserver_url: str, access_token: str, room_id: str, **kwargs) -> None:
        super().__init__(id, **kwargs)
        self.homeserver_url = homeserver_url.rstrip("/")
        self.access_token = access_token
        self.room_id = room_id

    def publish(self, item: Item) -> str:
        formatted = self.render(item)
        plain = "\n\n".join(part for part in (item.title, strip_html(item.body), item.url) if part)
        url = (
            f"{self.homeserver_url}/_matrix/client/r0/rooms/{quote(self.room_id, safe='')}"
            f"/send/m.room.message/{uuid.uuid4()}"
        )
        resp = self._request(
            "PUT",
            url,
            json={
                "msgtype": "m.text",
                "body": plain,
                "format": "org.matrix.custom.html",
                "formatted_body": formatted,
            },
            headers={"Authorization": f"Bearer {self.access_token}"},
        )
        return f"Published to Matrix: {self._json(resp).get('event_id', 'unknown')}"
