"""
Telegram Bot API target: one sendMessage call per item, optionally into a forum topic.
"""
from __future__ import annotations

import logging
from typing import Optional

from feedcast.errors import PublishError
from feedcast.models import Item
from feedcast.targets.base import HttpTarget

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = 4096


class TelegramTarget(HttpTarget):
    kind = "telegram"

    def __init__(
        self,
        id: str,
        bot_token: str,
        chat_id: str,
        parse_mode: Optional[str] = None,
        message_thread_id: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(id, **kwargs)
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.parse_mode = parse_mode
        self.message_thread_id = message_thread_id

    def publish(self, item: Item) -> str:
        message = self.render(item)
        if len(message) > MAX_MESSAGE_LENGTH:
            raise PublishError(
                f"Message too long for Telegram: {len(message)} characters (max {MAX_MESSAGE_LENGTH})"
            )

        payload = {"chat_id": self.chat_id, "text": message, "disable_web_page_preview": False}
        if self.parse_mode:
            payload["parse_mode"] = self.parse_mode
        if self.message_thread_id:
            try:
                thread_id = int(self.message_thread_id)
            except ValueError:
                thread_id = 0
            if thread_id > 0:
                payload["message_thread_id"] = thread_id
            else:
                logger.warning("Invalid message_thread_id '%s', ignoring", self.message_thread_id)

        resp = self._request("POST", f"{API_BASE}/bot{self.bot_token}/sendMessage", json=payload)
        message_id = (self._json(resp).get("result") or {}).get("message_id", "unknown")
        return f"Published to Telegram: {message_id}"
