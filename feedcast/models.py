"""
Core data structures shared by the feed synchronization and publication pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Tuple, Union


class FeedType(str, Enum):
    SYNDICATION = "rss"
    VIDEO_CHANNEL = "youtube"


@dataclass(frozen=True)
class Item:
    """
    Normalized representation of a newly discovered entry, identified by ``(feed_id, id)``.
    """

    id: str
    title: str
    url: str
    published_at: datetime
    feed_id: str
    body: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.feed_id, self.id)


@dataclass(frozen=True)
class SyndicationSource:
    url: str


@dataclass(frozen=True)
class VideoChannelSource:
    api_key: str
    channel_id: Optional[str] = None
    playlist_id: Optional[str] = None
    username: Optional[str] = None
    max_results: int = 10


@dataclass(frozen=True)
class FeedDescriptor:
    id: str
    type: FeedType
    source: Union[SyndicationSource, VideoChannelSource]
    name: str = ""
    enabled: bool = True
    destinations: Tuple[str, ...] = ()
    poll_interval: Optional[timedelta] = None
    max_retries: int = 3
    retry_base_delay: float = 2.0

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class ChangeDetectionState:
    validator_token: Optional[str] = None
    last_modified_marker: Optional[str] = None
    content_fingerprint: Optional[str] = None

    def with_validators(self, validator_token: Optional[str], last_modified_marker: Optional[str]) -> "ChangeDetectionState":
        """Adopt validators from a fresh response, keeping the old value where the host sent none."""
        return replace(
            self,
            validator_token=validator_token or self.validator_token,
            last_modified_marker=last_modified_marker or self.last_modified_marker,
        )


class FetchKind(str, Enum):
    NOT_MODIFIED = "not_modified"
    UNCHANGED = "unchanged"
    ITEMS = "items"


@dataclass
class FetchOutcome:
    kind: FetchKind
    state: ChangeDetectionState
    items: List[Item] = field(default_factory=list)

    @classmethod
    def not_modified(cls, state: ChangeDetectionState) -> "FetchOutcome":
        return cls(kind=FetchKind.NOT_MODIFIED, state=state)

    @classmethod
    def unchanged(cls, state: ChangeDetectionState) -> "FetchOutcome":
        return cls(kind=FetchKind.UNCHANGED, state=state)

    @classmethod
    def with_items(cls, items: List[Item], state: ChangeDetectionState) -> "FetchOutcome":
        return cls(kind=FetchKind.ITEMS, state=state, items=list(items))


@dataclass
class FeedResult:
    feed_id: str
    items: List[Item] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class PublishOutcome:
    destination_id: str
    success: bool
    message: str
    timestamp: datetime


@dataclass
class PublishRecord:
    item_id: str
    feed_id: str
    published_at: datetime
    outcomes: List[PublishOutcome] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.feed_id, self.item_id)

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)


@dataclass
class Credential:
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


@dataclass
class SweepSummary:
    new_items_found: int = 0
    items_published: int = 0
    feeds_checked: int = 0
    feeds_failed: int = 0
    publish_attempts: int = 0
    dry_run: bool = False
