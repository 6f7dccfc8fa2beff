"""
Error types raised while fetching and parsing upstream feeds.

Whether a failure is worth retrying inside the same sweep is carried on the
exception itself (``retryable``) so callers never need to inspect messages.
"""
from __future__ import annotations

from typing import Optional

# 425 Too Early asks the client to repeat the request later, like 408 and 429
RETRYABLE_STATUS_CODES = frozenset({408, 425, 429})


class FetchError(Exception):
    retryable = True


class TransientFetchError(FetchError):
    """Network trouble, timeouts; retried with backoff."""

    retryable = True


class PermanentFetchError(FetchError):
    """Parse failures and bad source configuration; surfaced without retry."""

    retryable = False


class NetworkError(TransientFetchError):
    pass


class ParseError(PermanentFetchError):
    pass


class HttpStatusError(FetchError):
    def __init__(self, status_code: int, url: str = "", detail: Optional[str] = None) -> None:
        self.status_code = status_code
        self.url = url
        self.detail = detail
        message = f"HTTP {status_code}"
        if url:
            message += f" for {url}"
        if detail:
            message += f": {detail}"
        super().__init__(message)

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code >= 500 or self.status_code in RETRYABLE_STATUS_CODES
