"""
Adapter that fetches RSS/Atom/JSON feeds with conditional requests and content fingerprinting.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ingest.infra.http import ConditionalHeaders, HttpFetcher
from ingest.ingesters.rss_base import parse_feed_entries, summarize

from feedcast.errors import FeedConfigError
from feedcast.models import (
    ChangeDetectionState,
    FeedDescriptor,
    FeedType,
    FetchOutcome,
    Item,
    SyndicationSource,
)

logger = logging.getLogger(__name__)


def content_fingerprint(body: bytes) -> str:
    return hashlib.sha256(body).hexdigest()


class SyndicationAdapter:
    feed_type = FeedType.SYNDICATION

    def __init__(
        self,
        fetcher: Optional[HttpFetcher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.fetcher = fetcher or HttpFetcher()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def fetch(self, descriptor: FeedDescriptor, state: ChangeDetectionState) -> FetchOutcome:
        source = descriptor.source
        if not isinstance(source, SyndicationSource):
            raise FeedConfigError(f"Invalid RSS feed configuration for {descriptor.id}")

        response = self.fetcher.fetch(
            source.url,
            ConditionalHeaders(etag=state.validator_token, last_modified=state.last_modified_marker),
        )
        if response.not_modified:
            logger.info("Feed %s not modified (304), skipping download", descriptor.display_name)
            return FetchOutcome.not_modified(state)

        refreshed = state.with_validators(response.etag, response.last_modified)
        fingerprint = content_fingerprint(response.content)
        if state.content_fingerprint == fingerprint:
            logger.info("Feed %s content unchanged (same hash), skipping parse", descriptor.display_name)
            return FetchOutcome.unchanged(refreshed)

        entries = parse_feed_entries(response.content)
        logger.debug("Parsed feed %s: %s", descriptor.id, summarize(entries))

        now = self.clock()
        items: List[Item] = []
        for entry in entries:
            if not entry.is_complete:
                logger.debug("Dropping incomplete entry in %s: %r", descriptor.id, entry.title)
                continue
            items.append(
                Item(
                    id=entry.guid,
                    title=entry.title,
                    url=entry.link,
                    published_at=entry.published_at or now,
                    feed_id=descriptor.id,
                    body=entry.summary,
                )
            )
        # fingerprint is adopted only after a successful parse
        return FetchOutcome.with_items(items, replace(refreshed, content_fingerprint=fingerprint))
