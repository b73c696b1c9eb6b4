import logging
import os
import signal

from config import RunConfig
from jobs import CrawlerFactory, MetricsClientFactory

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownHandler:
    """
    Signal handler: stop scheduling, release whatever native resources the
    collaborators may have left behind (e.g. orphaned browser processes), exit 0.
    """

    def __init__(self, config: RunConfig, crawler_factory: CrawlerFactory,
                 metrics_factory: MetricsClientFactory, scheduler=None):
        self.config = config
        self.crawler_factory = crawler_factory
        self.metrics_factory = metrics_factory
        self.scheduler = scheduler

    def install(self):
        for sig in HANDLED_SIGNALS:
            signal.signal(sig, self)

    def cleanup(self) -> bool:
        """Builds and closes one of each collaborator. Returns False if anything failed."""
        ok = True
        for name, factory in (("crawler", self.crawler_factory), ("metrics client", self.metrics_factory)):
            try:
                factory(self.config).close()
            except Exception as e:
                ok = False
                logger.error(f"Error during cleanup of {name}: {e}")
        return ok

    def __call__(self, signum, frame=None):
        logger.info(f"Received {signal.Signals(signum).name}. Cleaning up...")
        if self.scheduler is not None:
            try:
                self.scheduler.stop()
            except Exception as e:
                logger.error(f"Error stopping scheduler: {e}")

        if self.cleanup():
            logger.info("Cleanup complete")

        # sys.exit would wait on the scheduler's worker threads, so an in-flight tick would block exit.
        logging.shutdown()
        os._exit(0)
