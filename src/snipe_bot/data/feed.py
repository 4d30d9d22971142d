"""Market feed collaborator backed by the DexScreener public API."""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, List, Optional
from urllib.parse import quote

from pydantic import ValidationError

from ..core.errors import FeedError
from ..core.models import MarketSnapshot
from .http import JsonHttpClient

logger = logging.getLogger(__name__)

DEFAULT_DEXSCREENER_URL = "https://api.dexscreener.com"


class MarketFeed(ABC):
    """Read-only source of market snapshots."""

    @abstractmethod
    async def fetch_pairs(self, chain_id: str) -> List[MarketSnapshot]:
        """Fetch the current list of pairs for a chain."""
        pass

    @abstractmethod
    async def fetch_pair(self, chain_id: str, pair_address: str) -> Optional[MarketSnapshot]:
        """Fetch a single pair, or None if the feed does not know it."""
        pass

    async def get_price(self, chain_id: str, pair_address: str) -> Optional[Decimal]:
        """Current USD price of a pair, or None if unavailable."""
        snapshot = await self.fetch_pair(chain_id, pair_address)
        return snapshot.price_usd if snapshot else None

    async def close(self):
        pass


class DexScreenerFeed(MarketFeed):
    """DexScreener HTTP feed. No authentication."""

    def __init__(self, base_url: Optional[str] = None, http: Optional[JsonHttpClient] = None):
        """Initialize DexScreener feed."""
        self.base_url = (base_url or DEFAULT_DEXSCREENER_URL).rstrip("/")
        self._http = http or JsonHttpClient(timeout_seconds=10.0)
        logger.info(f"DexScreener feed initialized ({self.base_url})")

    async def fetch_pairs(self, chain_id: str) -> List[MarketSnapshot]:
        url = f"{self.base_url}/latest/dex/pairs/{quote(chain_id, safe='')}"
        pairs = await self._fetch_pair_records(url)
        snapshots = self._parse_records(pairs)
        logger.debug(f"Fetched {len(snapshots)} pairs for {chain_id}")
        return snapshots

    async def fetch_pair(self, chain_id: str, pair_address: str) -> Optional[MarketSnapshot]:
        url = (
            f"{self.base_url}/latest/dex/pairs/"
            f"{quote(chain_id, safe='')}/{quote(pair_address, safe='')}"
        )
        pairs = await self._fetch_pair_records(url)
        snapshots = self._parse_records(pairs[:1])
        return snapshots[0] if snapshots else None

    async def _fetch_pair_records(self, url: str) -> List[Any]:
        result = await self._http.get_json(url)
        if not result.ok:
            raise FeedError(f"DexScreener request failed: {result.error}")
        if not isinstance(result.data, dict):
            raise FeedError("DexScreener returned a non-object payload")
        pairs = result.data.get("pairs") or []
        if not isinstance(pairs, list):
            raise FeedError("DexScreener 'pairs' field is not a list")
        return pairs

    @staticmethod
    def _parse_records(records: List[Any]) -> List[MarketSnapshot]:
        snapshots: List[MarketSnapshot] = []
        for record in records:
            if not isinstance(record, dict):
                continue
            try:
                snapshots.append(MarketSnapshot.from_feed(record))
            except (ValidationError, AttributeError, TypeError) as e:
                logger.debug(f"Dropping malformed pair record {record.get('pairAddress')}: {e}")
        return snapshots

    async def close(self):
        await self._http.close()
