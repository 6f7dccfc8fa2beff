"""
Pydantic models for the feedcast configuration file.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from feedcast.models import FeedType

FEED_TYPE_ALIASES = {
    "rss": FeedType.SYNDICATION,
    "atom": FeedType.SYNDICATION,
    "syndication": FeedType.SYNDICATION,
    "youtube": FeedType.VIDEO_CHANNEL,
    "video_channel": FeedType.VIDEO_CHANNEL,
}


class SyndicationFeedConfig(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def _require_http(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("feed url must be http(s)")
        return value


class VideoFeedConfig(BaseModel):
    channel_id: Optional[str] = None
    playlist_id: Optional[str] = None
    username: Optional[str] = None
    max_results: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _require_identifier(self) -> "VideoFeedConfig":
        if not (self.channel_id or self.playlist_id or self.username):
            raise ValueError("Must specify channel_id, playlist_id, or username")
        return self


class FeedConfig(BaseModel):
    id: str
    name: str = ""
    type: FeedType
    config: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    publishers: List[str] = Field(default_factory=list)
    check_interval_minutes: Optional[int] = Field(default=None, gt=0)
    max_retries: int = Field(default=3, ge=0)
    retry_delay_seconds: float = Field(default=2.0, ge=0)

    @field_validator("type", mode="before")
    @classmethod
    def _normalise_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return FEED_TYPE_ALIASES.get(value.strip().lower(), value)
        return value


class PublisherConfig(BaseModel):
    type: str
    config: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("type", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class YouTubeConfig(BaseModel):
    api_key: str
    default_max_results: Optional[int] = Field(default=None, gt=0)


class ScheduleConfig(BaseModel):
    default_interval_minutes: int = Field(default=60, gt=0)
    timezone: str = "UTC"
    cleanup_hour: int = Field(default=2, ge=0, le=23)


class StorageConfig(BaseModel):
    data_dir: str = "./data"
    published_posts_file: str = "published_posts.json"
    feed_cache_file: str = "feed_cache.json"


class RetentionConfig(BaseModel):
    published_days: int = Field(default=30, gt=0)
    backup_days: int = Field(default=7, gt=0)


class AppConfig(BaseModel):
    feeds: List[FeedConfig] = Field(default_factory=list)
    publishers: Dict[str, PublisherConfig] = Field(default_factory=dict)
    youtube: Optional[YouTubeConfig] = None
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
