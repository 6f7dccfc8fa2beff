"""
Threads (Meta Graph API) target using a long-lived user access token.

Publishing is two calls: create a TEXT media container, then publish it. The
container is not always ready immediately, so the publish call waits first and
is retried once when the API reports the container as missing.
"""
from __future__ import annotations

import logging
import time
from typing import Callable

from feedcast.errors import PublishError
from feedcast.models import Item
from feedcast.targets.base import HttpTarget

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.threads.net/v1.0"
MAX_POST_LENGTH = 500
CONTAINER_READY_DELAY = 2.0
CONTAINER_RETRY_DELAY = 3.0


def fit_thread(text: str) -> str:
    if len(text) <= MAX_POST_LENGTH:
        return text
    return text[: MAX_POST_LENGTH - 3] + "..."


def _container_missing(exc: PublishError) -> bool:
    message = str(exc)
    return "does not exist" in message or "No se encuentra" in message


class ThreadsTarget(HttpTarget):
    kind = "threads"

    def __init__(
        self,
        id: str,
        access_token: str,
        user_id: str,
        sleep: Callable[[float], None] = time.sleep,
        **kwargs,
    ) -> None:
        super().__init__(id, **kwargs)
        self.access_token = access_token
        self.user_id = user_id
        self.sleep = sleep

    def publish(self, item: Item) -> str:
        text = fit_thread(self.render(item))
        resp = self._request(
            "POST",
            f"{GRAPH_URL}/{self.user_id}/threads",
            json={"media_type": "TEXT", "text": text, "access_token": self.access_token},
        )
        container_id = self._json(resp).get("id")
        if not container_id:
            raise PublishError(f"{self.id}: no container id in Threads response")
        logger.info("Created Threads container: %s", container_id)

        self.sleep(CONTAINER_READY_DELAY)
        try:
            return self._publish_container(container_id)
        except PublishError as exc:
            if not _container_missing(exc):
                raise
            logger.warning("Container %s not found, trying again after delay", container_id)
        self.sleep(CONTAINER_RETRY_DELAY)
        return self._publish_container(container_id)

    def _publish_container(self, container_id: str) -> str:
        resp = self._request(
            "POST",
            f"{GRAPH_URL}/{self.user_id}/threads_publish",
            json={"creation_id": container_id, "access_token": self.access_token},
        )
        return f"Published to Threads: {self._json(resp).get('id', 'unknown')}"
