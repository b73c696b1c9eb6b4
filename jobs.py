"""
Crawl job adapters.
Each job builds its own collaborator, uses it once and closes it. Failures are
logged and returned as a CrawlOutcome; they never propagate to the caller.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from collaborators import Crawler, MetricsClient, ProxyAuthenticationError
from config import RunConfig
from proxies import first_proxy

logger = logging.getLogger(__name__)

CERTIK_MARKET_ONLY = 'certik_market_only'
CERTIK_SYNCHRONIZED = 'certik_synchronized'
LUNARCRUSH_REFRESH = 'lunarcrush_refresh'

# Chromium's net error for a rejected proxy login, and the HTTP status line some proxies answer with.
PROXY_AUTH_MARKERS = (
    'ERR_INVALID_AUTH_CREDENTIALS',
    '407 Proxy Authentication Required',
)

CrawlerFactory = Callable[[RunConfig], Crawler]
MetricsClientFactory = Callable[[RunConfig], MetricsClient]


class ErrorKind(enum.Enum):
    PROXY_AUTH = 'proxy_auth'
    OTHER = 'other'


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CrawlOutcome:
    job: str
    success: bool
    started_at: datetime
    finished_at: Optional[datetime] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, ProxyAuthenticationError):
        return ErrorKind.PROXY_AUTH
    message = str(exc)
    if any(marker in message for marker in PROXY_AUTH_MARKERS):
        return ErrorKind.PROXY_AUTH
    return ErrorKind.OTHER


def log_proxy_auth_failure(config: RunConfig):
    logger.error("Proxy authentication failed. Please check your proxy credentials.")
    proxy = first_proxy(config.proxies)
    if proxy:
        logger.error(
            f"Current proxy configuration: host={proxy.host} port={proxy.port} "
            f"hasCredentials={proxy.has_credentials}"
        )


def _record_failure(outcome: CrawlOutcome, config: RunConfig, exc: Exception):
    outcome.success = False
    outcome.error_kind = classify_error(exc)
    outcome.error = str(exc)
    logger.error(f"❌ Job {outcome.job} failed: {exc}", exc_info=True)
    if outcome.error_kind is ErrorKind.PROXY_AUTH:
        log_proxy_auth_failure(config)


def _finish(outcome: CrawlOutcome) -> CrawlOutcome:
    # Stamped after the client is closed, so the next job starts strictly later.
    outcome.finished_at = _utcnow()
    if outcome.success:
        logger.info(f"✅ Job {outcome.job} complete")
    return outcome


def _close_quietly(job: str, client):
    if client is None:
        return
    try:
        client.close()
    except Exception as e:
        logger.error(f"Job {job}: error while closing client: {e}")


def _log_proxy(config: RunConfig):
    proxy = first_proxy(config.proxies)
    if proxy:
        logger.info(f"Using proxy: {proxy.host}:{proxy.port}")


def _run_certik(job: str, config: RunConfig, crawler_factory: CrawlerFactory, target, **options) -> CrawlOutcome:
    outcome = CrawlOutcome(job=job, success=False, started_at=_utcnow())
    crawler = None
    try:
        crawler = crawler_factory(config)
        _log_proxy(config)
        crawler.crawl_data(target, **options)
        outcome.success = True
    except Exception as e:
        _record_failure(outcome, config, e)
    finally:
        _close_quietly(job, crawler)

    return _finish(outcome)


def run_certik_market_only(config: RunConfig, crawler_factory: CrawlerFactory) -> CrawlOutcome:
    """Daily Certik crawl of the market-data collection only."""
    logger.info("Running Certik daily market data crawler...")
    return _run_certik(CERTIK_MARKET_ONLY, config, crawler_factory, config.market_data_collection)


def run_certik_synchronized(config: RunConfig, crawler_factory: CrawlerFactory) -> CrawlOutcome:
    """Certik crawl of security scores and market data together."""
    logger.info("Running Certik synchronized crawl for both collections...")
    targets = [config.security_scores_collection, config.market_data_collection]
    return _run_certik(CERTIK_SYNCHRONIZED, config, crawler_factory, targets, synchronized=True)


def run_lunarcrush_refresh(config: RunConfig, metrics_factory: MetricsClientFactory) -> CrawlOutcome:
    """Full LunarCrush refresh: ensure table, fetch every coin, persist."""
    logger.info("Running LunarCrush data crawler...")
    outcome = CrawlOutcome(job=LUNARCRUSH_REFRESH, success=False, started_at=_utcnow())
    client = None
    try:
        client = metrics_factory(config)
        client.ensure_collection()
        data = client.fetch_cryptocurrencies()
        client.save_to_db(data)
        outcome.success = True
    except Exception as e:
        _record_failure(outcome, config, e)
    finally:
        _close_quietly(outcome.job, client)

    return _finish(outcome)
