import unittest
from datetime import datetime, timedelta, timezone

from feedcast.ledger import PublishLedger
from feedcast.models import Item, PublishOutcome, PublishRecord

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _item(item_id, feed_id="blog"):
    return Item(id=item_id, title=item_id, url=f"https://example.com/{item_id}", published_at=NOW, feed_id=feed_id)


def _failed(dest="tg"):
    return PublishOutcome(dest, False, "boom", NOW)


class PublishLedgerTests(unittest.TestCase):
    def test_failed_attempt_still_counts_as_published(self):
        ledger = PublishLedger()
        record = ledger.record(_item("a"), [_failed("tg"), _failed("x")], now=NOW)

        self.assertEqual(record.success_count, 0)
        self.assertTrue(ledger.is_published("blog", "a"))

    def test_identity_is_scoped_by_feed(self):
        ledger = PublishLedger()
        ledger.record(_item("same", feed_id="one"), [], now=NOW)

        self.assertTrue(ledger.is_published("one", "same"))
        self.assertFalse(ledger.is_published("two", "same"))

    def test_second_record_for_same_item_is_ignored(self):
        ledger = PublishLedger()
        first = ledger.record(_item("a"), [_failed()], now=NOW)
        second = ledger.record(_item("a"), [PublishOutcome("tg", True, "ok", NOW)], now=NOW)

        self.assertIs(first, second)
        self.assertEqual(ledger.count(), 1)

    def test_prune_by_ledger_time(self):
        ledger = PublishLedger()
        ledger.record(_item("old"), [], now=NOW - timedelta(days=31))
        ledger.record(_item("edge"), [], now=NOW - timedelta(days=30))
        ledger.record(_item("new"), [], now=NOW - timedelta(days=1))

        removed = ledger.prune(timedelta(days=30), now=NOW)

        self.assertEqual(removed, 1)
        self.assertFalse(ledger.is_published("blog", "old"))
        self.assertTrue(ledger.is_published("blog", "edge"))
        self.assertEqual(ledger.count(), 2)

    def test_load_replaces_contents_and_counts_per_feed(self):
        ledger = PublishLedger([PublishRecord("stale", "blog", NOW)])
        ledger.load(
            [
                PublishRecord("a", "blog", NOW),
                PublishRecord("b", "blog", NOW),
                PublishRecord("c", "tube", NOW),
                PublishRecord("a", "blog", NOW),
            ]
        )

        self.assertFalse(ledger.is_published("blog", "stale"))
        self.assertEqual(ledger.count(), 3)
        self.assertEqual(ledger.count("blog"), 2)
        self.assertEqual(ledger.count("tube"), 1)

    def test_records_returns_copy(self):
        ledger = PublishLedger()
        ledger.record(_item("a"), [], now=NOW)

        ledger.records().clear()

        self.assertEqual(len(ledger.records()), 1)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
