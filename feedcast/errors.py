"""Exception hierarchy for the publication pipeline."""
from __future__ import annotations

from ingest.infra.errors import (
    FetchError,
    HttpStatusError,
    NetworkError,
    ParseError,
    PermanentFetchError,
    TransientFetchError,
)

__all__ = [
    "FeedcastError",
    "ConfigError",
    "FetchError",
    "TransientFetchError",
    "PermanentFetchError",
    "NetworkError",
    "ParseError",
    "HttpStatusError",
    "FeedConfigError",
    "DispatchError",
    "PublishError",
    "UnauthorizedError",
    "TokenRefreshError",
    "PersistenceError",
]


class FeedcastError(Exception):
    """Base exception for pipeline errors."""


class ConfigError(FeedcastError):
    """Configuration failed validation; fatal at startup."""


class FeedConfigError(PermanentFetchError):
    """A feed's type-specific configuration cannot be used."""


class DispatchError(FeedcastError):
    """A destination could not be resolved."""


class PublishError(FeedcastError):
    """A destination rejected or failed a publish call."""


class UnauthorizedError(PublishError):
    """The destination answered 401; the access token needs refreshing."""


class TokenRefreshError(PublishError):
    """Refresh-token exchange failed or no refresh token is available."""


class PersistenceError(FeedcastError):
    """Reading or writing durable state failed."""
