"""
Publishing target protocol plus the HTTP plumbing shared by concrete targets.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from feedcast.errors import PublishError, UnauthorizedError
from feedcast.models import Item
from feedcast.templates import TemplateRenderer, default_template
from utils.security import redact_secrets

logger = logging.getLogger(__name__)


class PublishingTarget(Protocol):
    id: str
    kind: str

    def publish(self, item: Item) -> str:
        ...


def build_session(user_agent: Optional[str] = None, max_retries: int = 2) -> requests.Session:
    session = requests.Session()
    # posts are not idempotent; only GETs are retried at the transport level
    retry = Retry(
        total=max_retries,
        backoff_factor=0.6,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["HEAD", "GET", "OPTIONS"],
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": user_agent or "feedcast/1.0"})
    return session


def raise_for_response(resp: requests.Response, target_id: str) -> None:
    if resp.status_code < 400:
        return
    detail = redact_secrets(resp.text[:300])
    if resp.status_code == 401:
        raise UnauthorizedError(f"{target_id}: unauthorized (401): {detail}")
    raise PublishError(f"{target_id}: HTTP {resp.status_code}: {detail}")


class HttpTarget:
    kind = "generic"

    def __init__(
        self,
        id: str,
        template: Optional[str] = None,
        session: Optional[requests.Session] = None,
        renderer: Optional[TemplateRenderer] = None,
        timeout: float = 20,
    ) -> None:
        self.id = id
        self.template = template or default_template(self.kind)
        self.session = session or build_session()
        self.renderer = renderer or TemplateRenderer()
        self.timeout = timeout

    def render(self, item: Item) -> str:
        return self.renderer.render(self.template, item)

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise PublishError(f"{self.id}: request failed: {redact_secrets(str(exc))}") from exc
        logger.debug("%s %s -> %s", method, redact_secrets(url), resp.status_code)
        raise_for_response(resp, self.id)
        return resp

    @staticmethod
    def _json(resp: requests.Response) -> dict:
        try:
            payload = resp.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}
