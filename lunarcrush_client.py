"""
LunarCrush API client.
Fetches the full coin list (social + market metrics) and stores one snapshot
row per coin in the configured collection table.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from database import make_engine, make_session_factory
from models import social_metrics_table

logger = logging.getLogger(__name__)

METRIC_FIELDS = ('price', 'volume_24h', 'market_cap', 'galaxy_score', 'sentiment', 'social_dominance', 'interactions_24h')


def _to_float(value) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _to_int(value) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class LunarCrushClient:
    """
    Client for the LunarCrush v4 public API, persisting through SQLAlchemy.
    The engine is created on first use, so constructing and closing an unused
    client touches nothing.
    """
    BASE_URL = "https://lunarcrush.com/api4/public"
    TIMEOUT = 30

    def __init__(self, database_url: str, collection_name: str, api_key: str):
        self.database_url = database_url
        self.collection_name = collection_name
        self.api_key = api_key
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        self._engine = None
        self._session_factory = None
        self.table = social_metrics_table(collection_name)

    def _session(self):
        if self._engine is None:
            self._engine = make_engine(self.database_url)
            self._session_factory = make_session_factory(self._engine)
        return self._session_factory()

    def ensure_collection(self):
        """Creates the collection table and its (symbol, fetched_at) index if missing."""
        db = self._session()
        try:
            self.table.create(bind=db.get_bind(), checkfirst=True)
        finally:
            db.close()
        logger.info(f"[LunarCrush] Collection '{self.collection_name}' ready")

    def fetch_cryptocurrencies(self) -> List[Dict[str, Any]]:
        endpoint = f"{self.BASE_URL}/coins/list/v2"
        logger.info(f"[LunarCrush] GET {endpoint}")
        response = requests.get(endpoint, headers=self.headers, timeout=self.TIMEOUT)
        logger.info(f"[LunarCrush] status={response.status_code}")
        response.raise_for_status()

        data = response.json().get('data') or []
        logger.info(f"[LunarCrush] Fetched {len(data)} coins")
        return data

    def save_to_db(self, data: List[Dict[str, Any]]) -> int:
        if not data:
            logger.info("[LunarCrush] No coins to save.")
            return 0

        fetched_at = datetime.now(timezone.utc).replace(tzinfo=None)
        rows = []
        for coin in data:
            row = {field: _to_float(coin.get(field)) for field in METRIC_FIELDS}
            row.update(
                coin_id=_to_int(coin.get('id')),
                symbol=coin.get('symbol'),
                name=coin.get('name'),
                alt_rank=_to_int(coin.get('alt_rank')),
                fetched_at=fetched_at,
                raw_data=coin,
            )
            rows.append(row)

        db = self._session()
        try:
            db.execute(self.table.insert(), rows)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"[LunarCrush] Saved {len(rows)} coins to '{self.collection_name}'")
        return len(rows)

    def close(self):
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
