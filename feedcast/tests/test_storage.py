import json
import os
import tempfile
import time
import unittest
from datetime import datetime, timezone
from pathlib import Path

from feedcast.models import ChangeDetectionState, PublishOutcome, PublishRecord
from feedcast.storage import StorageManager

NOW = datetime(2024, 6, 1, 2, 0, tzinfo=timezone.utc)


class StorageManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._tmp.name) / "data"
        self.storage = StorageManager(self.data_dir)
        self.storage.init()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_published_posts_round_trip(self):
        record = PublishRecord(
            item_id="g1",
            feed_id="blog",
            published_at=NOW,
            outcomes=[PublishOutcome("tg", True, "Published to Telegram: 1", NOW), PublishOutcome("x", False, "HTTP 500", NOW)],
        )

        self.storage.save_published_posts([record])
        loaded = self.storage.load_published_posts()

        self.assertEqual(loaded, [record])
        blob = json.loads(self.storage.published_posts_path.read_text(encoding="utf-8"))
        self.assertEqual(blob["posts"][0]["outcomes"][1]["destination_id"], "x")

    def test_missing_files_load_empty(self):
        self.assertEqual(self.storage.load_published_posts(), [])
        self.assertEqual(self.storage.load_feed_cache(), {})

    def test_corrupt_ledger_starts_fresh(self):
        self.storage.published_posts_path.write_text("{not json", encoding="utf-8")
        self.assertEqual(self.storage.load_published_posts(), [])

    def test_feed_cache_uses_conventional_field_names(self):
        self.storage.save_feed_cache(
            {"blog": ChangeDetectionState(validator_token='"e"', last_modified_marker="lm", content_fingerprint="h")}
        )

        blob = json.loads(self.storage.feed_cache_path.read_text(encoding="utf-8"))
        self.assertEqual(blob, {"feeds": {"blog": {"etag": '"e"', "last_modified": "lm", "last_content_hash": "h"}}})
        self.assertEqual(self.storage.load_feed_cache()["blog"].content_fingerprint, "h")

    def test_naive_timestamps_are_read_as_utc(self):
        self.storage.published_posts_path.write_text(
            json.dumps({"posts": [{"item_id": "a", "feed_id": "f", "published_at": "2024-06-01T02:00:00", "outcomes": []}]}),
            encoding="utf-8",
        )
        self.assertEqual(self.storage.load_published_posts()[0].published_at, NOW)

    def test_backup_and_cleanup(self):
        self.storage.save_published_posts([])
        backup = self.storage.backup_published_posts(now=NOW)

        self.assertEqual(backup.name, "published_posts.json.backup.20240601_020000")
        self.assertTrue(backup.exists())

        old_time = time.time() - 10 * 24 * 60 * 60
        os.utime(backup, (old_time, old_time))
        fresh = self.storage.backup_published_posts(now=datetime(2024, 6, 2, tzinfo=timezone.utc))

        self.assertEqual(self.storage.cleanup_old_backups(7), 1)
        self.assertFalse(backup.exists())
        self.assertTrue(fresh.exists())
        self.assertTrue(self.storage.published_posts_path.exists())

    def test_backup_without_ledger(self):
        self.assertIsNone(self.storage.backup_published_posts(now=NOW))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
