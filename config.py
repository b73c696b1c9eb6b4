import copy
import os
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple
from dotenv import load_dotenv

from proxies import ProxyRecord, parse_proxies, build_browser_options

load_dotenv()

# Default Collections
DEFAULT_SECURITY_SCORES_COLLECTION = 'security_scores'
DEFAULT_MARKET_DATA_COLLECTION = 'market_data'
DEFAULT_SOCIAL_METRICS_COLLECTION = 'lunarcrush_data'

# Collaborators (module:Class)
DEFAULT_CRAWLER_CLASS = 'skynet_certik:CertikCrawler'
DEFAULT_METRICS_CLIENT_CLASS = 'lunarcrush_client:LunarCrushClient'

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Schedule (UTC)
DAILY_CRAWL_HOUR = 0
DAILY_CRAWL_MINUTE = 0


class ConfigError(Exception):
    """Fatal startup configuration problem. The process must not schedule anything."""


@dataclass(frozen=True)
class RunConfig:
    database_url: str
    api_key: str = field(repr=False)
    security_scores_collection: str = DEFAULT_SECURITY_SCORES_COLLECTION
    market_data_collection: str = DEFAULT_MARKET_DATA_COLLECTION
    social_metrics_collection: str = DEFAULT_SOCIAL_METRICS_COLLECTION
    max_threads: int = 1
    max_top_projects: Optional[int] = None
    proxies: Tuple[ProxyRecord, ...] = ()
    browser_options: dict = field(default_factory=dict, compare=False)
    crawler_class: str = DEFAULT_CRAWLER_CLASS
    metrics_client_class: str = DEFAULT_METRICS_CLIENT_CLASS

    def crawler_options(self) -> dict:
        """Keyword arguments for the Certik crawler constructor."""
        return {
            "database_url": self.database_url,
            "security_scores_collection": self.security_scores_collection,
            "market_data_collection": self.market_data_collection,
            "max_threads": self.max_threads,
            "max_top_projects": self.max_top_projects,
            "proxies": list(self.proxies),
            "browser_options": copy.deepcopy(self.browser_options),
        }

    def metrics_client_options(self) -> dict:
        return {
            "database_url": self.database_url,
            "collection_name": self.social_metrics_collection,
            "api_key": self.api_key,
        }


def default_max_threads() -> int:
    return max((os.cpu_count() or 1) - 2, 1)


def _clean(env: Mapping[str, str], key: str) -> str:
    return (env.get(key) or '').strip()


def _parse_max_threads(raw: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default_max_threads()
    return value if value > 0 else default_max_threads()


def _parse_top_projects(raw: str) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def resolve_run_config(env: Optional[Mapping[str, str]] = None) -> RunConfig:
    """
    Builds the immutable RunConfig from environment-style strings.
    Missing connection string or API key raises ConfigError.
    Blank collection names fall back to their defaults.
    """
    if env is None:
        env = os.environ

    database_url = _clean(env, 'DATABASE_URL')
    if not database_url:
        raise ConfigError("Missing DATABASE_URL. Please check your .env file.")

    api_key = _clean(env, 'LUNARCRUSH_API_KEY')
    if not api_key:
        raise ConfigError("Missing required LunarCrush API key (LUNARCRUSH_API_KEY). Please check your .env file.")

    proxies = tuple(parse_proxies(env.get('PROXIES')))
    production = _clean(env, 'APP_ENV').lower() == 'production'

    return RunConfig(
        database_url=database_url,
        api_key=api_key,
        security_scores_collection=_clean(env, 'SECURITY_SCORES_COLLECTION') or DEFAULT_SECURITY_SCORES_COLLECTION,
        market_data_collection=_clean(env, 'MARKET_DATA_COLLECTION') or DEFAULT_MARKET_DATA_COLLECTION,
        social_metrics_collection=_clean(env, 'LUNARCRUSH_COLLECTION') or DEFAULT_SOCIAL_METRICS_COLLECTION,
        max_threads=_parse_max_threads(_clean(env, 'MAX_THREADS')),
        max_top_projects=_parse_top_projects(_clean(env, 'MAX_TOPS_PROJECTS')),
        proxies=proxies,
        browser_options=build_browser_options(proxies, production=production),
        crawler_class=_clean(env, 'CERTIK_CRAWLER') or DEFAULT_CRAWLER_CLASS,
        metrics_client_class=_clean(env, 'LUNARCRUSH_CLIENT') or DEFAULT_METRICS_CLIENT_CLASS,
    )


def describe(config: RunConfig) -> dict:
    """Loggable view of the config: proxies collapsed to a count, secrets masked."""
    key = config.api_key
    return {
        "database_url": re.sub(r'://([^:/@]+):[^@]+@', r'://\1:***@', config.database_url),
        "security_scores_collection": config.security_scores_collection,
        "market_data_collection": config.market_data_collection,
        "social_metrics_collection": config.social_metrics_collection,
        "max_threads": config.max_threads,
        "max_top_projects": config.max_top_projects,
        "proxies": f"{len(config.proxies)} proxies configured" if config.proxies else "No proxies",
        "headless": config.browser_options.get("headless"),
        "api_key": f"{key[:4]}...{key[-4:]}" if len(key) > 8 else "***",
        "crawler_class": config.crawler_class,
        "metrics_client_class": config.metrics_client_class,
    }
