import unittest
from unittest.mock import MagicMock

from feedcast.scheduler import build_scheduler
from feedcast.schemas import ScheduleConfig


class BuildSchedulerTests(unittest.TestCase):
    def test_registers_sweep_and_cleanup_jobs(self):
        orchestrator = MagicMock()
        scheduler = build_scheduler(orchestrator, ScheduleConfig(default_interval_minutes=15, cleanup_hour=3), dry_run=True)

        jobs = {job.id: job for job in scheduler.get_jobs()}

        self.assertEqual(set(jobs), {"feed_sweep", "ledger_cleanup"})
        sweep = jobs["feed_sweep"]
        self.assertEqual(sweep.trigger.interval.total_seconds(), 15 * 60)
        self.assertEqual(sweep.max_instances, 1)
        self.assertTrue(sweep.coalesce)
        self.assertIn("hour='3'", str(jobs["ledger_cleanup"].trigger))

        sweep.func()
        orchestrator.run_sweep.assert_called_once_with(dry_run=True)
        jobs["ledger_cleanup"].func()
        orchestrator.run_cleanup.assert_called_once_with()


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
