"""
File-backed persistence for the ledger and the per-feed change-detection cache.

Both stores are small JSON documents inside ``data_dir``; writes go through a
temporary file and an atomic rename so a crash never leaves half a ledger.
"""
from __future__ import annotations

import json
import logging
import os
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping

from feedcast.errors import PersistenceError
from feedcast.models import ChangeDetectionState, PublishOutcome, PublishRecord

logger = logging.getLogger(__name__)

BACKUP_MARKER = ".backup."


class StorageManager:
    def __init__(
        self,
        data_dir: Path,
        published_posts_file: str = "published_posts.json",
        feed_cache_file: str = "feed_cache.json",
    ) -> None:
        self.data_dir = Path(data_dir)
        self.published_posts_path = self.data_dir / published_posts_file
        self.feed_cache_path = self.data_dir / feed_cache_file

    def init(self) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot create data directory {self.data_dir}: {exc}") from exc
        logger.info("Storage initialized in directory: %s", self.data_dir)

    def load_published_posts(self) -> List[PublishRecord]:
        blob = self._load_json(self.published_posts_path)
        if blob is None:
            logger.info("Published posts file doesn't exist, creating new storage")
            return []
        try:
            records = [_dict_to_record(entry) for entry in blob.get("posts", [])]
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Failed to parse published posts file (%s), creating new storage", exc)
            return []
        logger.info("Loaded %d published posts from storage", len(records))
        return records

    def save_published_posts(self, records: List[PublishRecord]) -> None:
        payload = {"version": 1, "posts": [_record_to_dict(record) for record in records]}
        self._write_json(self.published_posts_path, payload)
        logger.debug("Saved %d published posts to storage", len(records))

    def load_feed_cache(self) -> Dict[str, ChangeDetectionState]:
        blob = self._load_json(self.feed_cache_path)
        if blob is None:
            logger.info("Feed cache file doesn't exist, creating new cache storage")
            return {}
        feeds = blob.get("feeds")
        if not isinstance(feeds, dict):
            logger.warning("Failed to parse feed cache file, creating new cache storage")
            return {}
        cache = {feed_id: _dict_to_state(entry) for feed_id, entry in feeds.items() if isinstance(entry, dict)}
        logger.info("Loaded cache for %d feeds from storage", len(cache))
        return cache

    def save_feed_cache(self, cache: Mapping[str, ChangeDetectionState]) -> None:
        payload = {"feeds": {feed_id: _state_to_dict(state) for feed_id, state in cache.items()}}
        self._write_json(self.feed_cache_path, payload)
        logger.debug("Saved cache for %d feeds to storage", len(cache))

    def backup_published_posts(self, now: datetime | None = None) -> Path | None:
        if not self.published_posts_path.exists():
            return None
        stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d_%H%M%S")
        backup_path = self.published_posts_path.with_name(f"{self.published_posts_path.name}{BACKUP_MARKER}{stamp}")
        try:
            shutil.copy2(self.published_posts_path, backup_path)
        except OSError as exc:
            raise PersistenceError(f"Cannot back up {self.published_posts_path}: {exc}") from exc
        logger.info("Created backup: %s", backup_path)
        return backup_path

    def cleanup_old_backups(self, days_to_keep: int) -> int:
        if not self.data_dir.exists():
            return 0
        cutoff = time.time() - days_to_keep * 24 * 60 * 60
        removed = 0
        for path in self.data_dir.iterdir():
            if BACKUP_MARKER not in path.name or not path.is_file():
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
                    logger.info("Removed old backup: %s", path)
            except OSError as exc:
                logger.warning("Failed to remove old backup %s: %s", path, exc)
        return removed

    def _load_json(self, path: Path) -> Dict[str, Any] | None:
        if not path.exists():
            return None
        try:
            blob = json.loads(path.read_text(encoding="utf-8"))
        except ValueError:
            logger.warning("%s is not valid JSON; ignoring it", path)
            return {}
        except OSError as exc:
            raise PersistenceError(f"Cannot read {path}: {exc}") from exc
        return blob if isinstance(blob, dict) else {}

    def _write_json(self, path: Path, payload: Dict[str, Any]) -> None:
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write {path}: {exc}") from exc


def _record_to_dict(record: PublishRecord) -> Dict[str, Any]:
    return {
        "item_id": record.item_id,
        "feed_id": record.feed_id,
        "published_at": record.published_at.isoformat(),
        "outcomes": [
            {
                "destination_id": outcome.destination_id,
                "success": outcome.success,
                "message": outcome.message,
                "timestamp": outcome.timestamp.isoformat(),
            }
            for outcome in record.outcomes
        ],
    }


def _dict_to_record(data: Dict[str, Any]) -> PublishRecord:
    return PublishRecord(
        item_id=str(data["item_id"]),
        feed_id=str(data["feed_id"]),
        published_at=_parse_timestamp(data["published_at"]),
        outcomes=[
            PublishOutcome(
                destination_id=str(entry["destination_id"]),
                success=bool(entry.get("success")),
                message=entry.get("message") or "",
                timestamp=_parse_timestamp(entry["timestamp"]),
            )
            for entry in data.get("outcomes", [])
        ],
    )


def _state_to_dict(state: ChangeDetectionState) -> Dict[str, Any]:
    return {
        "etag": state.validator_token,
        "last_modified": state.last_modified_marker,
        "last_content_hash": state.content_fingerprint,
    }


def _dict_to_state(data: Dict[str, Any]) -> ChangeDetectionState:
    return ChangeDetectionState(
        validator_token=data.get("etag"),
        last_modified_marker=data.get("last_modified"),
        content_fingerprint=data.get("last_content_hash"),
    )


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed
