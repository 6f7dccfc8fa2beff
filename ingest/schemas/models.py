"""
Pydantic models for parsed upstream entries.
These carry only what the publishing pipeline needs (id, title, link, summary, date).
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class FeedEntry(BaseModel):
    guid: str
    title: str
    link: str
    summary: Optional[str] = None
    published_at: Optional[datetime] = None

    @field_validator("guid", "title", "link", mode="before")
    @classmethod
    def _strip(cls, value: Optional[str]) -> str:
        return (value or "").strip()

    @property
    def is_complete(self) -> bool:
        return bool(self.guid and self.title and self.link)


class VideoEntry(BaseModel):
    video_id: str
    title: str
    description: Optional[str] = None
    published_at: datetime
    channel_title: Optional[str] = None

    @property
    def url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"
