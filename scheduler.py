import logging
import sys

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_MAX_INSTANCES
from collaborators import load_collaborator
from orchestrator import Orchestrator
from shutdown import ShutdownHandler
from config import (
    ConfigError,
    DAILY_CRAWL_HOUR,
    DAILY_CRAWL_MINUTE,
    LOG_FORMAT,
    LOG_LEVEL,
    describe,
    resolve_run_config,
)

logger = logging.getLogger(__name__)

DAILY_JOB_ID = 'daily_crawl'


class CrawlScheduler:
    """
    Owns the single recurring trigger: every day at 00:00 UTC, independent
    of the host time zone. Ticks never overlap; a trigger that fires while a
    tick is still running is skipped.
    """

    def __init__(self, orchestrator: Orchestrator, scheduler: BlockingScheduler = None):
        self.orchestrator = orchestrator
        self.scheduler = scheduler or BlockingScheduler(timezone='UTC')
        self.scheduler.add_listener(self._on_overlap, EVENT_JOB_MAX_INSTANCES)

    def _on_overlap(self, event):
        logger.warning(f"Skipping tick at {event.scheduled_run_times}: previous tick still running")

    def schedule(self):
        self.scheduler.add_job(
            self.orchestrator.run_tick,
            CronTrigger(hour=DAILY_CRAWL_HOUR, minute=DAILY_CRAWL_MINUTE, timezone='UTC'),
            id=DAILY_JOB_ID,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
        )
        logger.info("Crawlers scheduled (all times in UTC):")
        logger.info("- Certik Market Data: Daily at 00:00")
        logger.info("- Certik Synchronized Market Data and Security Scores: Sundays at 00:00")
        logger.info("- LunarCrush: Daily at 00:00 (after Certik)")

    def start(self, run_startup_tick: bool = True):
        if run_startup_tick:
            self.orchestrator.run_startup_tick()

        logger.info("Setting up scheduled crawlers...")
        self.schedule()
        logger.info("Starting scheduler...")
        self.scheduler.start()

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")


def main(env=None) -> int:
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)

    try:
        run_config = resolve_run_config(env)
        crawler_cls = load_collaborator(run_config.crawler_class)
        metrics_cls = load_collaborator(run_config.metrics_client_class)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    logger.info(f"Configuration: {describe(run_config)}")

    def crawler_factory(cfg):
        return crawler_cls(**cfg.crawler_options())

    def metrics_factory(cfg):
        return metrics_cls(**cfg.metrics_client_options())

    orchestrator = Orchestrator(run_config, crawler_factory, metrics_factory)
    crawl_scheduler = CrawlScheduler(orchestrator)
    ShutdownHandler(run_config, crawler_factory, metrics_factory, scheduler=crawl_scheduler).install()

    crawl_scheduler.start()
    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
