import logging
from datetime import date, datetime, timezone
from typing import Callable, List, Optional

from config import RunConfig
from jobs import (
    CrawlOutcome,
    CrawlerFactory,
    MetricsClientFactory,
    run_certik_market_only,
    run_certik_synchronized,
    run_lunarcrush_refresh,
)

logger = logging.getLogger(__name__)

SUNDAY = 7  # isoweekday()

CertikJob = Callable[[RunConfig, CrawlerFactory], CrawlOutcome]


def select_certik_job(day: date) -> CertikJob:
    """Sundays get the synchronized security + market crawl, every other day market data only."""
    if day.isoweekday() == SUNDAY:
        return run_certik_synchronized
    return run_certik_market_only


class Orchestrator:
    """
    Runs one tick: the Certik job for the day, then LunarCrush.
    LunarCrush always starts after the Certik job has finished, whatever its outcome.
    """

    def __init__(self, config: RunConfig, crawler_factory: CrawlerFactory, metrics_factory: MetricsClientFactory):
        self.config = config
        self.crawler_factory = crawler_factory
        self.metrics_factory = metrics_factory

    def _run(self, certik_job: CertikJob) -> List[CrawlOutcome]:
        certik = certik_job(self.config, self.crawler_factory)
        lunar = run_lunarcrush_refresh(self.config, self.metrics_factory)

        outcomes = [certik, lunar]
        summary = ", ".join(f"{o.job}={'ok' if o.success else 'failed'}" for o in outcomes)
        logger.info(f"🏁 Tick complete: {summary}")
        return outcomes

    def run_tick(self, now: Optional[datetime] = None) -> List[CrawlOutcome]:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        certik_job = select_certik_job(now.date())
        logger.info(f"Scheduled tick for {now.date().isoformat()} (UTC): {certik_job.__name__}")
        return self._run(certik_job)

    def run_startup_tick(self) -> List[CrawlOutcome]:
        logger.info("Starting initial data collection...")
        return self._run(run_certik_synchronized)
