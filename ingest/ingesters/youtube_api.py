"""
YouTube Data API v3 client used by the video-channel adapter.

Every channel exposes its uploads as a playlist; this client resolves that
playlist from whatever identifier the feed was configured with and then
lists it.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ingest.infra.errors import HttpStatusError, NetworkError, ParseError, PermanentFetchError
from ingest.schemas.models import VideoEntry
from utils.security import redact_secrets

logger = logging.getLogger(__name__)

API_BASE = "https://www.googleapis.com/youtube/v3"
PAGE_SIZE = 50
SKIPPED_TITLES = {"Private video": "private", "Deleted video": "deleted"}


class YouTubeApiClient:
    def __init__(
        self,
        api_key: str,
        timeout: float = 15,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            retry = Retry(
                total=2,
                backoff_factor=0.5,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods=["GET"],
                raise_on_status=False,
            )
            session.mount("https://", HTTPAdapter(max_retries=retry))
        self.session = session

    def resolve_uploads_playlist(
        self,
        channel_id: Optional[str] = None,
        playlist_id: Optional[str] = None,
        username: Optional[str] = None,
    ) -> str:
        if playlist_id:
            logger.debug("Using direct playlist_id: %s", playlist_id)
            return playlist_id
        if channel_id:
            return self._uploads_playlist_for_channel(channel_id)
        if username:
            return self._uploads_playlist_for_channel(self._channel_id_for_username(username))
        raise PermanentFetchError("Must specify channel_id, playlist_id, or username")

    def list_playlist_videos(self, playlist_id: str, fetch_count: int = PAGE_SIZE) -> List[VideoEntry]:
        """List up to ``fetch_count`` playlist entries, skipping private, deleted and blank ones."""
        videos: List[VideoEntry] = []
        seen = 0
        page_token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {
                "part": "snippet",
                "playlistId": playlist_id,
                "maxResults": PAGE_SIZE,
            }
            if page_token:
                params["pageToken"] = page_token
            payload = self._get("playlistItems", params)
            items = payload.get("items") or []
            seen += len(items)
            for raw in items:
                video = self._video_from_item(raw)
                if video is not None:
                    videos.append(video)
            page_token = payload.get("nextPageToken")
            if not page_token or seen >= fetch_count:
                break

        logger.info("Filtered %d valid videos from %d total in playlist %s", len(videos), seen, playlist_id)
        return videos

    def _channel_id_for_username(self, username: str) -> str:
        payload = self._get("channels", {"part": "id", "forUsername": username})
        items = payload.get("items") or []
        if not items or not items[0].get("id"):
            raise PermanentFetchError(f"Channel not found for username: {username}")
        return items[0]["id"]

    def _uploads_playlist_for_channel(self, channel_id: str) -> str:
        payload = self._get("channels", {"part": "contentDetails", "id": channel_id})
        items = payload.get("items") or []
        try:
            return items[0]["contentDetails"]["relatedPlaylists"]["uploads"]
        except (IndexError, KeyError, TypeError):
            raise PermanentFetchError(f"Channel not found: {channel_id}") from None

    def _get(self, resource: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{API_BASE}/{resource}"
        query = dict(params, key=self.api_key)
        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NetworkError(f"YouTube API request failed: {redact_secrets(str(exc))}") from exc
        if response.status_code >= 400:
            raise HttpStatusError(
                response.status_code,
                url=url,
                detail=redact_secrets(response.text[:200]),
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError(f"YouTube API returned invalid JSON for {resource}") from exc
        if not isinstance(payload, dict):
            raise ParseError(f"Unexpected YouTube API payload for {resource}")
        return payload

    @staticmethod
    def _video_from_item(raw: Dict[str, Any]) -> Optional[VideoEntry]:
        snippet = raw.get("snippet") or {}
        resource = snippet.get("resourceId") or {}
        raw_id = raw.get("id")
        if isinstance(raw_id, dict):
            raw_id = raw_id.get("videoId")
        video_id = resource.get("videoId") or raw_id or ""
        title = snippet.get("title") or ""

        reason = SKIPPED_TITLES.get(title)
        if reason is None and not title:
            reason = "empty_title"
        if reason is None and not video_id:
            reason = "empty_video_id"
        if reason:
            logger.info("Skipping video '%s' (video_id='%s'): reason=%s", title, video_id, reason)
            return None

        return VideoEntry(
            video_id=video_id,
            title=title,
            description=snippet.get("description") or None,
            published_at=_parse_published(snippet.get("publishedAt"), video_id),
            channel_title=snippet.get("channelTitle"),
        )


def _parse_published(value: Optional[str], video_id: str) -> datetime:
    if value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
        except ValueError:
            pass
    logger.warning("Video %s has an unparseable publish date %r; using current time", video_id, value)
    return datetime.now(timezone.utc)
