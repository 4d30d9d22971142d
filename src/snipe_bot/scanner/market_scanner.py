"""Recurring market scan: feed -> score/filter/rank -> candidate list."""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Set

from ..core.enums import CycleOutcome
from ..core.errors import FeedError
from ..core.store import StateStore
from ..data.feed import MarketFeed
from .scoring import ScoringEngine

logger = logging.getLogger(__name__)

MIN_SCAN_INTERVAL_SEC = 5.0


@dataclass
class ScanReport:
    """Result of one scan cycle."""

    sequence: int
    outcome: CycleOutcome
    fetched: int = 0
    published: int = 0
    error: str = ""


class Scanner:
    """
    Pulls market snapshots on a timer and publishes ranked candidates.

    Cycles are launched as independent tasks, so a slow feed call can
    overlap the next tick. Each cycle takes a sequence number when it
    starts; the store only accepts a list whose sequence is newer than the
    last one published, so a late, older cycle is reported as STALE. Failed
    cycles never touch the published list.
    """

    def __init__(
        self,
        store: StateStore,
        feed: MarketFeed,
        scoring: Optional[ScoringEngine] = None,
        config: Optional[Dict] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize scanner."""
        defaults = self._default_config()
        if config:
            defaults.update(config)
        self.config = defaults
        self.store = store
        self.feed = feed
        self.scoring = scoring or ScoringEngine()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sequence = itertools.count(1)
        self._running = False
        self._cycles: Set[asyncio.Task] = set()
        self.last_report: Optional[ScanReport] = None
        logger.info("Scanner initialized")

    @staticmethod
    def _default_config() -> Dict:
        return {
            "min_interval_sec": MIN_SCAN_INTERVAL_SEC,
            "max_candidates": 80,
            # back-off after an unexpected loop failure
            "error_backoff_sec": 5.0,
        }

    def interval(self) -> float:
        return max(self.config["min_interval_sec"], float(self.store.settings.scan_interval_sec))

    # ------------------------------------------------------------------
    # Single cycle
    # ------------------------------------------------------------------

    async def scan_once(self) -> ScanReport:
        """Run one fetch/score/publish cycle and classify the outcome."""
        sequence = next(self._sequence)
        settings = self.store.settings
        try:
            snapshots = await self.feed.fetch_pairs(settings.chain_id)
        except FeedError as e:
            logger.warning(f"Scan #{sequence} skipped, feed unavailable: {e}")
            return self._finish(ScanReport(sequence, CycleOutcome.FEED_ERROR, error=str(e)))
        except Exception as e:
            logger.error(f"Scan #{sequence} failed: {e}")
            return self._finish(ScanReport(sequence, CycleOutcome.ERROR, error=str(e)))

        try:
            ranked = self.scoring.rank(
                snapshots,
                settings.filter_config(),
                self._clock(),
                limit=self.config["max_candidates"],
            )
            published = await self.store.publish_candidates(sequence, ranked)
        except Exception as e:
            logger.error(f"Scan #{sequence} failed while ranking: {e}")
            return self._finish(
                ScanReport(sequence, CycleOutcome.ERROR, fetched=len(snapshots), error=str(e))
            )

        if not published:
            logger.info(f"Scan #{sequence} discarded, a newer scan already published")
            return self._finish(ScanReport(sequence, CycleOutcome.STALE, fetched=len(snapshots)))

        logger.info(f"Scan #{sequence}: {len(ranked)} candidates from {len(snapshots)} pairs")
        return self._finish(
            ScanReport(sequence, CycleOutcome.OK, fetched=len(snapshots), published=len(ranked))
        )

    def _finish(self, report: ScanReport) -> ScanReport:
        self.last_report = report
        return report

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    async def run(self):
        """Launch a scan cycle every interval while auto-scan is enabled."""
        self._running = True
        logger.info("Scanner loop started")
        while self._running:
            try:
                if self.store.settings.auto_scan:
                    task = asyncio.create_task(self.scan_once())
                    self._cycles.add(task)
                    task.add_done_callback(self._cycles.discard)
                await asyncio.sleep(self.interval())
            except Exception as e:
                logger.error(f"Error in scanner loop: {e}")
                await asyncio.sleep(self.config["error_backoff_sec"])

    async def stop(self):
        """Stop the loop and cancel cycles still in flight."""
        self._running = False
        for task in list(self._cycles):
            task.cancel()
        if self._cycles:
            await asyncio.gather(*self._cycles, return_exceptions=True)
        logger.info("Scanner stopped")
