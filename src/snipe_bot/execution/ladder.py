"""Take-profit ladder: arm/disarm/edit and the recurring price tick."""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..core.enums import CycleOutcome
from ..core.errors import FeedError, LadderValidationError
from ..core.models import Ladder, MarketSnapshot, TradeResult
from ..core.store import StateStore
from ..data.feed import MarketFeed
from .engine import TradeExecutor

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    """What one ladder tick looked at and did."""

    outcome: CycleOutcome = CycleOutcome.OK
    evaluated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    sells: List[TradeResult] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


def _parse_numbers(text: str, name: str) -> List[float]:
    tokens = [t.strip() for t in (text or "").split(",")]
    if not tokens or tokens == [""]:
        raise LadderValidationError(f"Ladder {name} must not be empty")
    values = []
    for token in tokens:
        try:
            value = float(token)
        except ValueError:
            raise LadderValidationError(f"Ladder {name} entry {token!r} is not a number") from None
        if not math.isfinite(value):
            raise LadderValidationError(f"Ladder {name} entry {token!r} is not finite")
        values.append(value)
    return values


class LadderEngine:
    """
    Owns ladder behavior. All reads and writes go through the store, so a
    tick that is running while the operator edits or disarms only ever sees
    whole ladder maps.
    """

    def __init__(
        self,
        store: StateStore,
        executor: TradeExecutor,
        feed: MarketFeed,
        config: Optional[Dict[str, Any]] = None,
    ):
        """Initialize ladder engine."""
        defaults = self._default_config()
        if config:
            defaults.update(config)
        self.config = defaults
        self.store = store
        self.executor = executor
        self.feed = feed
        self._running = False
        self.last_report: Optional[TickReport] = None
        logger.info("Ladder engine initialized")

    @staticmethod
    def _default_config() -> Dict[str, Any]:
        return {
            "tick_interval_sec": 15.0,
            "error_backoff_sec": 5.0,
        }

    # ------------------------------------------------------------------
    # Operator commands
    # ------------------------------------------------------------------

    async def arm(self, mint: str, snapshot: Optional[MarketSnapshot] = None) -> Ladder:
        """
        Arm (creating with defaults if needed) and reset progress.

        The entry price always comes from the current snapshot; without one
        it is cleared so the next buy sets it.
        """
        if snapshot is None:
            candidate = self.store.find_candidate(mint)
            snapshot = candidate.snapshot if candidate else None

        def apply(current: Optional[Ladder]) -> Ladder:
            ladder = current or Ladder()
            update: Dict[str, Any] = {
                "armed": True,
                "executed": [False] * len(ladder.levels),
                "entry_price": None,
                "generation": ladder.generation + 1,
            }
            if snapshot is not None:
                price = snapshot.price_usd
                update["entry_price"] = price if price and price > 0 else None
                update["chain_id"] = snapshot.chain_id
                update["pair_address"] = snapshot.pair_address
            return ladder.model_copy(update=update)

        ladder = await self.store.update_ladder(mint, apply)
        logger.info(f"Ladder armed for {mint} (entry={ladder.entry_price}, levels={ladder.levels})")
        return ladder

    async def disarm(self, mint: str) -> Optional[Ladder]:
        """Stop automation for ``mint``; levels, parts and progress are kept."""
        def apply(current: Optional[Ladder]) -> Optional[Ladder]:
            if current is None:
                return None
            return current.model_copy(update={"armed": False})

        ladder = await self.store.update_ladder(mint, apply)
        if ladder is not None:
            logger.info(f"Ladder disarmed for {mint}")
        return ladder

    async def edit(self, mint: str, levels_text: str, parts_text: str) -> Ladder:
        """
        Replace levels and parts from comma-separated text.

        Raises:
            LadderValidationError: input is malformed or breaks a ladder
                invariant. The stored ladder is left untouched.
        """
        levels = _parse_numbers(levels_text, "levels")
        parts = _parse_numbers(parts_text, "parts")
        if len(levels) != len(parts):
            raise LadderValidationError(
                f"Ladder levels ({len(levels)}) and parts ({len(parts)}) must have equal length"
            )
        try:
            edited = Ladder(levels=levels, parts=parts)
        except ValidationError as e:
            raise LadderValidationError(f"Invalid ladder: {e}") from e

        def apply(current: Optional[Ladder]) -> Ladder:
            base = current or Ladder()
            return base.model_copy(update={
                "levels": edited.levels,
                "parts": edited.parts,
                "executed": [False] * len(edited.levels),
                "generation": base.generation + 1,
            })

        ladder = await self.store.update_ladder(mint, apply)
        logger.info(f"Ladder edited for {mint}: levels={ladder.levels} parts={ladder.parts}")
        return ladder

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self) -> TickReport:
        """Evaluate every armed ladder once against the current price."""
        report = TickReport()
        for mint, ladder in self.store.ladders().items():
            if not ladder.armed or ladder.entry_price is None or not ladder.has_pair:
                continue
            try:
                await self._evaluate(mint, ladder, report)
            except FeedError as e:
                report.errors[mint] = str(e)
                logger.warning(f"Ladder tick: price unavailable for {mint}: {e}")
            except Exception as e:
                report.errors[mint] = str(e)
                logger.error(f"Ladder tick failed for {mint}: {e}")

        if report.errors:
            feed_only = all(m in report.skipped for m in report.errors)
            report.outcome = CycleOutcome.FEED_ERROR if feed_only else CycleOutcome.ERROR
        self.last_report = report
        return report

    async def _evaluate(self, mint: str, ladder: Ladder, report: TickReport):
        try:
            price = await self.feed.get_price(ladder.chain_id, ladder.pair_address)
        except FeedError:
            report.skipped.append(mint)
            raise
        if price is None or price <= 0:
            report.skipped.append(mint)
            return

        report.evaluated.append(mint)
        executed = ladder.executed_flags()
        for i in range(len(ladder.levels)):
            if executed[i] or price < ladder.target_price(i):
                continue
            logger.info(
                f"Ladder level {i} hit for {mint}: price {price} >= {ladder.target_price(i)}, "
                f"selling {ladder.parts[i]}%"
            )
            result = await self.executor.sell(mint, ladder.parts[i])
            report.sells.append(result)
            # the level is spent whether or not the sell went through
            await self._mark_executed(mint, ladder, i)

    async def _mark_executed(self, mint: str, seen: Ladder, index: int):
        """Flag one level, unless the ladder was re-armed or edited since the tick read it."""
        def apply(current: Optional[Ladder]) -> Optional[Ladder]:
            if current is None or current.generation != seen.generation:
                return None
            flags = current.executed_flags()
            if flags[index]:
                return None
            flags[index] = True
            return current.model_copy(update={"executed": flags})

        await self.store.update_ladder(mint, apply)

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    async def run(self):
        """Tick at a fixed interval until stopped."""
        self._running = True
        logger.info("Ladder loop started")
        while self._running:
            try:
                await self.tick()
                await asyncio.sleep(self.config["tick_interval_sec"])
            except Exception as e:
                logger.error(f"Error in ladder loop: {e}")
                await asyncio.sleep(self.config["error_backoff_sec"])

    async def stop(self):
        self._running = False
        logger.info("Ladder loop stopped")
