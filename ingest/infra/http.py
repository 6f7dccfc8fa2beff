"""
Reusable HTTP fetching utilities with polite defaults (conditional requests, per-host spacing).
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from ingest.infra.errors import HttpStatusError, NetworkError
from utils.security import redact_secrets

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "feedcast/1.0 (+https://github.com/feedcast/feedcast)"


@dataclass
class ConditionalHeaders:
    etag: Optional[str] = None
    last_modified: Optional[str] = None


@dataclass
class FetchResponse:
    url: str
    status_code: int
    content: bytes = b""
    etag: Optional[str] = None
    last_modified: Optional[str] = None

    @property
    def not_modified(self) -> bool:
        return self.status_code == 304


class HttpFetcher:
    """
    Thin wrapper over requests.Session that issues conditional GETs and spaces out hits per host.

    A single attempt is made per call; retry policy belongs to the caller.
    """

    def __init__(
        self,
        user_agent: Optional[str] = None,
        min_delay: float = 0.0,
        timeout: float = 20,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "User-Agent": user_agent or DEFAULT_USER_AGENT,
                "Accept": "application/rss+xml,application/atom+xml,application/feed+json,"
                "application/xml;q=0.9,*/*;q=0.8",
            }
        )
        self.min_delay = min_delay
        self.timeout = timeout
        self._last_hit: Dict[str, float] = {}
        self._lock = threading.RLock()

    def fetch(self, url: str, conditional: Optional[ConditionalHeaders] = None) -> FetchResponse:
        """
        GET ``url`` once, sending ``If-None-Match``/``If-Modified-Since`` when validators are known.

        Returns a ``FetchResponse`` for 2xx and 304 answers. Raises ``NetworkError`` for
        connection problems and ``HttpStatusError`` for any other status.
        """
        self._respect_delay(url)
        headers: Dict[str, str] = {}
        if conditional:
            if conditional.etag:
                headers["If-None-Match"] = conditional.etag
                logger.debug("Using If-None-Match: %s", conditional.etag)
            if conditional.last_modified:
                headers["If-Modified-Since"] = conditional.last_modified
                logger.debug("Using If-Modified-Since: %s", conditional.last_modified)

        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NetworkError(redact_secrets(f"Request to {url} failed: {exc}")) from exc

        if response.status_code == 304:
            return FetchResponse(url=url, status_code=304)
        if response.status_code >= 400:
            raise HttpStatusError(response.status_code, url=url)

        return FetchResponse(
            url=url,
            status_code=response.status_code,
            content=response.content,
            etag=response.headers.get("ETag"),
            last_modified=response.headers.get("Last-Modified"),
        )

    def _respect_delay(self, url: str) -> None:
        if self.min_delay <= 0:
            return
        domain = self._extract_domain(url)
        with self._lock:
            last = self._last_hit.get(domain)
            now = time.time()
            if last and now - last < self.min_delay:
                time.sleep(self.min_delay - (now - last))
            self._last_hit[domain] = time.time()

    @staticmethod
    def _extract_domain(url: str) -> str:
        return url.split("/")[2] if "://" in url else url
