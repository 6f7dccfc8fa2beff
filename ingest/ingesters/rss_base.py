"""
Shared helpers for syndication feed parsing.

RSS and Atom documents go through feedparser; documents feedparser does not
recognise as a feed are retried as JSON Feed (https://jsonfeed.org).
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import feedparser

from ingest.infra.errors import ParseError
from ingest.schemas.models import FeedEntry

logger = logging.getLogger(__name__)


def parse_feed_entries(feed_content: bytes) -> List[FeedEntry]:
    """Parse a raw feed body into entries; raises ``ParseError`` if the body is no known feed format."""
    feed = feedparser.parse(feed_content)
    if getattr(feed, "version", "") or getattr(feed, "entries", None):
        return [_entry_from_feedparser(entry) for entry in feed.entries]

    entries = _parse_json_feed(feed_content)
    if entries is not None:
        return entries

    reason = getattr(feed, "bozo_exception", None)
    raise ParseError(f"Unable to parse feed: {reason or 'unrecognised format'}")


def _entry_from_feedparser(entry: Any) -> FeedEntry:
    link = getattr(entry, "link", "") or ""
    guid = getattr(entry, "id", "") or link
    summary = getattr(entry, "summary", None) or getattr(entry, "description", None)
    if not summary:
        contents = getattr(entry, "content", None) or []
        if contents:
            summary = contents[0].get("value")
    published = getattr(entry, "published_parsed", None) or getattr(entry, "updated_parsed", None)
    return FeedEntry(
        guid=guid,
        title=getattr(entry, "title", "") or "",
        link=link,
        summary=summary.strip() if summary else None,
        published_at=_parse_struct_time(published),
    )


def _parse_json_feed(feed_content: bytes) -> Optional[List[FeedEntry]]:
    try:
        document = json.loads(feed_content)
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(document, dict) or not isinstance(document.get("items"), list):
        return None

    logger.debug("Parsing body as JSON Feed (%s)", document.get("version", "unknown version"))
    entries: List[FeedEntry] = []
    for raw in document["items"]:
        if not isinstance(raw, dict):
            continue
        link = raw.get("url") or raw.get("external_url") or ""
        summary = raw.get("summary") or raw.get("content_text") or raw.get("content_html")
        entries.append(
            FeedEntry(
                guid=str(raw.get("id") or link),
                title=raw.get("title") or "",
                link=link,
                summary=summary.strip() if isinstance(summary, str) and summary.strip() else None,
                published_at=_parse_iso8601(raw.get("date_published") or raw.get("date_modified")),
            )
        )
    return entries


def _parse_struct_time(struct_time) -> Optional[datetime]:
    if not struct_time:
        return None
    try:
        return datetime(*struct_time[:6], tzinfo=timezone.utc)
    except (TypeError, ValueError):
        return None


def _parse_iso8601(value: Optional[str]) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def summarize(entries: List[FeedEntry]) -> Dict[str, int]:
    complete = sum(1 for entry in entries if entry.is_complete)
    return {"entries": len(entries), "complete": complete, "incomplete": len(entries) - complete}
