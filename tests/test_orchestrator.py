import unittest
from unittest.mock import MagicMock
from datetime import date, datetime, timedelta, timezone
import sys
import os

# Ensure we can import from parent directory
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from config import resolve_run_config
from jobs import CERTIK_MARKET_ONLY, CERTIK_SYNCHRONIZED, LUNARCRUSH_REFRESH, run_certik_market_only, run_certik_synchronized
from orchestrator import Orchestrator, select_certik_job

SUNDAY = date(2024, 6, 2)

class TestSelectCertikJob(unittest.TestCase):

    def test_sunday_is_synchronized(self):
        for weeks in range(0, 52):
            day = SUNDAY + timedelta(weeks=weeks)
            self.assertIs(select_certik_job(day), run_certik_synchronized, day)

    def test_other_days_market_only(self):
        for offset in range(1, 7):
            day = SUNDAY + timedelta(days=offset)
            self.assertIs(select_certik_job(day), run_certik_market_only, day)

class RecordingCollaborators:
    """Fake crawler/metrics client that records the order of every call."""

    def __init__(self, crawl_error=None, lunar_error=None):
        self.events = []
        self.crawl_error = crawl_error
        self.lunar_error = lunar_error
        self.crawler = MagicMock()
        self.client = MagicMock()
        self.crawler.crawl_data.side_effect = self._crawl
        self.crawler.close.side_effect = lambda: self.events.append('crawler.close')
        self.client.ensure_collection.side_effect = lambda: self.events.append('lunar.ensure')
        self.client.fetch_cryptocurrencies.side_effect = self._fetch
        self.client.close.side_effect = lambda: self.events.append('lunar.close')

    def _crawl(self, *args, **kwargs):
        self.events.append('crawler.crawl')
        if self.crawl_error:
            raise self.crawl_error

    def _fetch(self):
        self.events.append('lunar.fetch')
        if self.lunar_error:
            raise self.lunar_error
        return []

    def crawler_factory(self, config):
        self.events.append('crawler.new')
        return self.crawler

    def metrics_factory(self, config):
        self.events.append('lunar.new')
        return self.client

class TestOrchestrator(unittest.TestCase):

    def setUp(self):
        self.config = resolve_run_config({'DATABASE_URL': 'sqlite://', 'LUNARCRUSH_API_KEY': 'key'})

    def make(self, fakes):
        return Orchestrator(self.config, fakes.crawler_factory, fakes.metrics_factory)

    def test_sunday_tick(self):
        fakes = RecordingCollaborators()
        outcomes = self.make(fakes).run_tick(datetime(2024, 6, 2, 0, 0, tzinfo=timezone.utc))
        self.assertEqual([o.job for o in outcomes], [CERTIK_SYNCHRONIZED, LUNARCRUSH_REFRESH])
        fakes.crawler.crawl_data.assert_called_once_with(['security_scores', 'market_data'], synchronized=True)

    def test_weekday_tick(self):
        fakes = RecordingCollaborators()
        outcomes = self.make(fakes).run_tick(datetime(2024, 6, 5, 0, 0, tzinfo=timezone.utc))
        self.assertEqual([o.job for o in outcomes], [CERTIK_MARKET_ONLY, LUNARCRUSH_REFRESH])
        fakes.crawler.crawl_data.assert_called_once_with('market_data')

    def test_day_is_taken_in_utc(self):
        # Monday 01:00 at UTC+5 is still Sunday in UTC
        plus_five = timezone(timedelta(hours=5))
        fakes = RecordingCollaborators()
        outcomes = self.make(fakes).run_tick(datetime(2024, 6, 3, 1, 0, tzinfo=plus_five))
        self.assertEqual(outcomes[0].job, CERTIK_SYNCHRONIZED)

    def test_lunarcrush_starts_after_certik_finishes(self):
        fakes = RecordingCollaborators()
        certik, lunar = self.make(fakes).run_tick(datetime(2024, 6, 4, tzinfo=timezone.utc))
        self.assertGreaterEqual(lunar.started_at, certik.finished_at)
        self.assertLess(fakes.events.index('crawler.close'), fakes.events.index('lunar.new'))

    def test_certik_failure_does_not_stop_lunarcrush(self):
        fakes = RecordingCollaborators(crawl_error=RuntimeError("Navigation timeout"))
        with self.assertLogs('jobs', level='ERROR'):
            certik, lunar = self.make(fakes).run_tick(datetime(2024, 6, 4, tzinfo=timezone.utc))
        self.assertFalse(certik.success)
        self.assertTrue(lunar.success)
        self.assertGreaterEqual(lunar.started_at, certik.finished_at)
        self.assertEqual(fakes.events, [
            'crawler.new', 'crawler.crawl', 'crawler.close',
            'lunar.new', 'lunar.ensure', 'lunar.fetch', 'lunar.close',
        ])

    def test_both_failures_are_contained(self):
        fakes = RecordingCollaborators(crawl_error=RuntimeError("a"), lunar_error=RuntimeError("b"))
        with self.assertLogs('jobs', level='ERROR'):
            outcomes = self.make(fakes).run_tick(datetime(2024, 6, 4, tzinfo=timezone.utc))
        self.assertEqual([o.success for o in outcomes], [False, False])

    def test_default_now(self):
        fakes = RecordingCollaborators()
        outcomes = self.make(fakes).run_tick()
        self.assertEqual(len(outcomes), 2)

    def test_startup_tick_is_synchronized_on_any_day(self):
        fakes = RecordingCollaborators()
        outcomes = self.make(fakes).run_startup_tick()
        self.assertEqual([o.job for o in outcomes], [CERTIK_SYNCHRONIZED, LUNARCRUSH_REFRESH])
        fakes.crawler.crawl_data.assert_called_once_with(['security_scores', 'market_data'], synchronized=True)

if __name__ == '__main__':
    unittest.main()
