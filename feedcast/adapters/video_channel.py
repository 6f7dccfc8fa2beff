"""
Adapter for video-channel feeds backed by the YouTube Data API.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from ingest.ingesters.youtube_api import PAGE_SIZE, YouTubeApiClient

from feedcast.errors import FeedConfigError
from feedcast.models import (
    ChangeDetectionState,
    FeedDescriptor,
    FeedType,
    FetchOutcome,
    Item,
    VideoChannelSource,
)

logger = logging.getLogger(__name__)


class VideoChannelAdapter:
    feed_type = FeedType.VIDEO_CHANNEL

    def __init__(
        self,
        client_factory: Optional[Callable[[str], YouTubeApiClient]] = None,
        timeout: float = 15,
    ) -> None:
        self.client_factory = client_factory or (lambda api_key: YouTubeApiClient(api_key, timeout=timeout))
        self._clients: Dict[str, YouTubeApiClient] = {}

    def fetch(self, descriptor: FeedDescriptor, state: ChangeDetectionState) -> FetchOutcome:
        source = descriptor.source
        if not isinstance(source, VideoChannelSource):
            raise FeedConfigError(f"Invalid YouTube feed configuration for {descriptor.id}")
        if not source.api_key:
            raise FeedConfigError("YouTube global configuration not found")

        client = self._client(source.api_key)
        logger.info(
            "Starting YouTube video fetch: channel_id=%s, playlist_id=%s, username=%s",
            source.channel_id,
            source.playlist_id,
            source.username,
        )
        playlist_id = client.resolve_uploads_playlist(
            channel_id=source.channel_id,
            playlist_id=source.playlist_id,
            username=source.username,
        )
        videos = client.list_playlist_videos(playlist_id, fetch_count=max(source.max_results, PAGE_SIZE))
        items = [
            Item(
                id=video.video_id,
                title=video.title,
                url=video.url,
                published_at=video.published_at,
                feed_id=descriptor.id,
                body=video.description,
            )
            for video in videos
        ]
        # no conditional fetch for the API; change-detection state passes through untouched
        return FetchOutcome.with_items(items, state)

    def _client(self, api_key: str) -> YouTubeApiClient:
        client = self._clients.get(api_key)
        if client is None:
            client = self.client_factory(api_key)
            self._clients[api_key] = client
        return client
