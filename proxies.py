"""
Proxy pool parsing.
PROXIES is a JSON list of "HOST:PORT:USER:PASS" strings. Only the first
valid entry is wired into the crawler; the rest are kept but unused.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from urllib.parse import quote

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-accelerated-2d-canvas',
    '--disable-gpu',
    '--window-size=1920x1080',
]


@dataclass(frozen=True)
class ProxyRecord:
    host: str
    port: str
    username: str
    password: str = field(repr=False)

    @property
    def url(self) -> str:
        user = quote(self.username, safe='')
        pwd = quote(self.password, safe='')
        return f"http://{user}:{pwd}@{self.host}:{self.port}"

    @property
    def server(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def as_browser_proxy(self) -> dict:
        """Proxy mapping in the shape browser launchers expect (server + credentials)."""
        return {"server": self.server, "username": self.username, "password": self.password}


def _parse_entry(entry) -> Optional[ProxyRecord]:
    if not isinstance(entry, str):
        return None
    parts = entry.strip().split(':', 3)
    if len(parts) != 4 or not all(parts):
        return None
    host, port, username, password = parts
    return ProxyRecord(host=host, port=port, username=username, password=password)


def parse_proxies(raw: Optional[str]) -> List[ProxyRecord]:
    """
    Parses the raw PROXIES value into ProxyRecords.
    Never raises: a malformed list yields an empty pool and a warning.
    """
    if not raw or not raw.strip():
        return []

    try:
        entries = json.loads(raw)
    except ValueError as e:
        logger.warning(f"Error parsing proxies: {e}")
        return []

    if not isinstance(entries, list):
        logger.warning(f"Error parsing proxies: expected a JSON list, got {type(entries).__name__}")
        return []

    pool = [p for p in (_parse_entry(e) for e in entries) if p is not None]

    dropped = len(entries) - len(pool)
    if dropped:
        logger.warning(f"Dropped {dropped} malformed proxy entr{'y' if dropped == 1 else 'ies'} (expected HOST:PORT:USER:PASS)")
    return pool


def first_proxy(pool: Sequence[ProxyRecord]) -> Optional[ProxyRecord]:
    return pool[0] if pool else None


def build_browser_options(pool: Sequence[ProxyRecord], production: bool = False) -> dict:
    """Browser launch options for the crawler, routed through the first proxy if any."""
    args = list(BROWSER_ARGS)
    proxy = first_proxy(pool)
    if proxy:
        args.append(f"--proxy-server={proxy.url}")

    options = {
        "headless": production,
        "args": args,
        "ignore_https_errors": True,
    }
    if proxy:
        options["proxy"] = proxy.as_browser_proxy()
    return options
