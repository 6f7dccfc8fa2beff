"""
High-level orchestration: one check-and-publish sweep, plus the daily ledger cleanup.
"""
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence

from ingest.infra.http import HttpFetcher

from feedcast.adapters.base import AdapterRegistry
from feedcast.adapters.syndication import SyndicationAdapter
from feedcast.adapters.video_channel import VideoChannelAdapter
from feedcast.config_loader import CredentialStore, build_descriptors
from feedcast.dispatcher import TargetDispatcher
from feedcast.errors import PersistenceError
from feedcast.ledger import PublishLedger
from feedcast.models import Item, PublishRecord, SweepSummary
from feedcast.registry import FeedRegistry
from feedcast.schemas import AppConfig
from feedcast.settings import FeedcastSettings
from feedcast.storage import StorageManager
from feedcast.targets.factory import build_targets

logger = logging.getLogger(__name__)


class SweepOrchestrator:
    def __init__(
        self,
        registry: FeedRegistry,
        ledger: PublishLedger,
        dispatcher: TargetDispatcher,
        storage: Optional[StorageManager] = None,
        default_interval: timedelta = timedelta(minutes=60),
        publish_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Optional[Callable[[], datetime]] = None,
        retention_days: int = 30,
        backup_days: int = 7,
    ) -> None:
        self.registry = registry
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.storage = storage
        self.default_interval = default_interval
        self.publish_delay = publish_delay
        self.sleep = sleep
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.retention_days = retention_days
        self.backup_days = backup_days
        # sweeps and cleanups never overlap
        self._run_lock = threading.Lock()

    def run_sweep(self, dry_run: bool = False) -> SweepSummary:
        with self._run_lock:
            return self._sweep(dry_run)

    def _sweep(self, dry_run: bool) -> SweepSummary:
        logger.info("Starting feed check cycle%s", " (dry run)" if dry_run else "")
        summary = SweepSummary(dry_run=dry_run)
        results = self.registry.run_sweep(self.default_interval)
        summary.feeds_checked = len(results)

        published_any = False
        for result in results:
            if not result.ok:
                summary.feeds_failed += 1
                logger.error("Error checking feed %s: %s", result.feed_id, result.error)
                continue
            tracker = self.registry.get(result.feed_id)
            destinations = tracker.descriptor.destinations if tracker else ()
            if not destinations:
                # skipped before dedup so none of these items enter the ledger
                if result.items:
                    logger.warning("No publishers configured for feed: %s", result.feed_id)
                continue
            for item in result.items:
                if self.ledger.is_published(item.feed_id, item.id):
                    logger.debug("Post already published: %s", item.title)
                    continue
                summary.new_items_found += 1
                if dry_run:
                    logger.info("[DRY RUN] Would publish: %s to %s", item.title, ", ".join(destinations))
                    continue
                if published_any and self.publish_delay > 0:
                    self.sleep(self.publish_delay)
                record = self.publish_item(item, destinations)
                if record is None:
                    continue
                published_any = True
                summary.publish_attempts += 1
                if record.success_count > 0:
                    summary.items_published += 1

        self._save_feed_cache()
        if not dry_run and summary.publish_attempts:
            self._save_ledger()

        logger.info(
            "Feed check completed: %d feeds checked, %d failed, %d new posts found, %d published",
            summary.feeds_checked,
            summary.feeds_failed,
            summary.new_items_found,
            summary.items_published,
        )
        return summary

    def publish_item(self, item: Item, destinations: Sequence[str]) -> Optional[PublishRecord]:
        """Dispatch one item and record the attempt; returns None if it was already in the ledger."""
        if self.ledger.is_published(item.feed_id, item.id):
            return None
        logger.info("Publishing post: %s", item.title)
        outcomes = self.dispatcher.dispatch(item, destinations)
        return self.ledger.record(item, outcomes, now=self.clock())

    def run_cleanup(self, retention_days: Optional[int] = None, backup_days: Optional[int] = None) -> int:
        if retention_days is None:
            retention_days = self.retention_days
        if backup_days is None:
            backup_days = self.backup_days
        with self._run_lock:
            logger.info("Running daily cleanup")
            if self.storage is not None:
                try:
                    self.storage.backup_published_posts(now=self.clock())
                except PersistenceError as exc:
                    logger.error("Failed to create backup: %s", exc)

            removed = self.ledger.prune(timedelta(days=retention_days), now=self.clock())
            self._save_ledger()

            if self.storage is not None:
                removed_backups = self.storage.cleanup_old_backups(backup_days)
                if removed_backups:
                    logger.info("Removed %d old backups", removed_backups)
        return removed

    def _save_feed_cache(self) -> None:
        if self.storage is None:
            return
        try:
            self.storage.save_feed_cache(self.registry.snapshot_cache())
        except PersistenceError as exc:
            logger.error("Failed to save feed cache: %s", exc)

    def _save_ledger(self) -> None:
        if self.storage is None:
            return
        try:
            self.storage.save_published_posts(self.ledger.records())
        except PersistenceError as exc:
            logger.error("Failed to save published posts: %s", exc)


def build_adapters(settings: FeedcastSettings) -> AdapterRegistry:
    adapters = AdapterRegistry()
    adapters.register(
        SyndicationAdapter(HttpFetcher(user_agent=settings.user_agent, timeout=settings.http_timeout_seconds))
    )
    adapters.register(VideoChannelAdapter(timeout=settings.http_timeout_seconds))
    return adapters


def build_orchestrator(settings: FeedcastSettings, config: AppConfig) -> SweepOrchestrator:
    data_dir = settings.data_dir_override or Path(config.storage.data_dir)
    storage = StorageManager(
        data_dir,
        published_posts_file=config.storage.published_posts_file,
        feed_cache_file=config.storage.feed_cache_file,
    )
    storage.init()

    ledger = PublishLedger(storage.load_published_posts())
    registry = FeedRegistry.from_descriptors(build_descriptors(config), build_adapters(settings), storage.load_feed_cache())
    credentials = CredentialStore(settings.config_path)
    targets = build_targets(
        config,
        persist=credentials.save,
        user_agent=settings.user_agent,
        timeout=settings.http_timeout_seconds,
    )
    dispatcher = TargetDispatcher(targets, parallel=settings.parallel_dispatch)
    return SweepOrchestrator(
        registry,
        ledger,
        dispatcher,
        storage=storage,
        default_interval=timedelta(minutes=config.schedule.default_interval_minutes),
        publish_delay=settings.publish_delay_seconds,
        retention_days=config.retention.published_days,
        backup_days=config.retention.backup_days,
    )
