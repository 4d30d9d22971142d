"""Composite scoring, filtering and ranking of market snapshots."""

import logging
import math
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..core.models import FilterConfig, MarketSnapshot, ScoredCandidate

logger = logging.getLogger(__name__)

UNKNOWN_AGE_MINUTES = 9999.0


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class ScoringEngine:
    """
    Pure scoring functions. Same snapshot and same ``now`` always give the
    same score.
    """

    def __init__(self, config: Optional[Dict] = None):
        defaults = self._default_config()
        if config:
            defaults.update(config)
        self.config = defaults

    @staticmethod
    def _default_config() -> Dict:
        return {
            "weight_age": 0.25,
            "weight_liquidity": 0.25,
            "weight_volume": 0.25,
            "weight_valuation": 0.15,
            "weight_momentum": 0.10,
            # age component reaches zero at this many minutes
            "age_horizon_minutes": 240.0,
            "liquidity_log_scale": 5.0,
            "volume_log_scale": 6.0,
            "valuation_log_scale": 7.0,
            "valuation_unknown": 0.6,
            "momentum_cap_pct": 80.0,
            "max_candidates": 80,
        }

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def _age_component(self, snapshot: MarketSnapshot, now: datetime) -> float:
        age = snapshot.age_minutes(now)
        if age is None:
            age = UNKNOWN_AGE_MINUTES
        horizon = self.config["age_horizon_minutes"]
        return _clamp(1.0 - min(age, horizon) / horizon)

    def _liquidity_component(self, snapshot: MarketSnapshot) -> float:
        liquidity = max(0.0, snapshot.liquidity_usd or 0.0)
        return _clamp(math.log10(1.0 + liquidity) / self.config["liquidity_log_scale"])

    def _volume_component(self, snapshot: MarketSnapshot) -> float:
        volume = max(0.0, snapshot.volume_24h or 0.0)
        return _clamp(math.log10(1.0 + volume) / self.config["volume_log_scale"])

    def _valuation_component(self, snapshot: MarketSnapshot) -> float:
        fdv = snapshot.fdv
        if fdv is None or fdv <= 0:
            return self.config["valuation_unknown"]
        return _clamp(1.0 - math.log10(max(1.0, fdv)) / self.config["valuation_log_scale"])

    def _momentum_component(self, snapshot: MarketSnapshot) -> float:
        change = snapshot.change_h1 or 0.0
        cap = self.config["momentum_cap_pct"]
        if change <= 0:
            return 0.0
        if change > cap:
            return 0.2
        return 0.6 + 0.4 * (1.0 - change / cap)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def score(self, snapshot: MarketSnapshot, now: datetime) -> float:
        """Weighted desirability score in [0, 100], one decimal place."""
        total = (
            self.config["weight_age"] * self._age_component(snapshot, now)
            + self.config["weight_liquidity"] * self._liquidity_component(snapshot)
            + self.config["weight_volume"] * self._volume_component(snapshot)
            + self.config["weight_valuation"] * self._valuation_component(snapshot)
            + self.config["weight_momentum"] * self._momentum_component(snapshot)
        )
        return round(_clamp(total) * 100.0, 1)

    def passes_filters(self, snapshot: MarketSnapshot, filters: FilterConfig, now: datetime) -> bool:
        """All thresholds must hold. A missing value passes its own filter."""
        if filters.max_age_minutes > 0:
            age = snapshot.age_minutes(now)
            if age is not None and age > filters.max_age_minutes:
                return False

        if snapshot.liquidity_usd is not None and snapshot.liquidity_usd < filters.min_liquidity_usd:
            return False
        if snapshot.volume_24h is not None and snapshot.volume_24h < filters.min_volume_24h:
            return False
        if snapshot.fdv is not None and snapshot.fdv > filters.max_fdv:
            return False

        change = snapshot.change_h1
        if change is not None and not filters.min_change_h1 <= change <= filters.max_change_h1:
            return False

        mint = (snapshot.base_address or "").lower()
        deny = {m.lower() for m in filters.deny_list}
        if mint and mint in deny:
            return False
        if filters.allow_list:
            allow = {m.lower() for m in filters.allow_list}
            if mint not in allow:
                return False
        return True

    def rank(
        self,
        snapshots: Iterable[MarketSnapshot],
        filters: FilterConfig,
        now: datetime,
        limit: Optional[int] = None,
    ) -> List[ScoredCandidate]:
        """Filter, sort by score descending (stable), truncate."""
        limit = self.config["max_candidates"] if limit is None else limit
        candidates = [
            ScoredCandidate(snapshot=s, score=self.score(s, now))
            for s in snapshots
            if self.passes_filters(s, filters, now)
        ]
        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates[:limit]
