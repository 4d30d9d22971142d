"""Unit tests for LadderEngine."""

import asyncio
from decimal import Decimal

import pytest

from snipe_bot.core.enums import CycleOutcome
from snipe_bot.core.errors import LadderValidationError
from snipe_bot.core.models import Ladder, ScoredCandidate
from snipe_bot.execution.ladder import LadderEngine

MINT = "MintA"
PAIR = "PairA"


class RecordingExecutor:
    """Executor stand-in that records sells and can block on demand."""

    def __init__(self):
        self.sells = []
        self.gate = None

    async def sell(self, mint, pct=None):
        self.sells.append((mint, pct))
        if self.gate is not None:
            await self.gate.wait()
        return None


@pytest.fixture
def recording_executor():
    return RecordingExecutor()


@pytest.fixture
def ladder_engine(store, recording_executor, mock_feed):
    return LadderEngine(store, recording_executor, mock_feed, {"tick_interval_sec": 0.01})


async def _seed(store, **fields):
    base = dict(armed=True, entry_price=Decimal("1.00"), chain_id="solana", pair_address=PAIR)
    base.update(fields)
    await store.update_ladder(MINT, lambda _: Ladder(**base))


class TestArmDisarm:
    @pytest.mark.asyncio
    async def test_arm_creates_default_ladder(self, ladder_engine, make_snapshot):
        ladder = await ladder_engine.arm(MINT, make_snapshot(price_usd=Decimal("0.5"), pair_address=PAIR))

        assert ladder.armed
        assert ladder.levels == [2.0, 3.0, 5.0, 10.0]
        assert ladder.parts == [40.0, 20.0, 20.0, 20.0]
        assert ladder.entry_price == Decimal("0.5")
        assert ladder.pair_address == PAIR
        assert ladder.executed == [False] * 4

    @pytest.mark.asyncio
    async def test_arm_uses_scanned_candidate(self, ladder_engine, store, make_snapshot):
        snap = make_snapshot(base_address=MINT, price_usd=Decimal("0.25"))
        await store.publish_candidates(1, [ScoredCandidate(snapshot=snap, score=70.0)])

        ladder = await ladder_engine.arm(MINT)

        assert ladder.entry_price == Decimal("0.25")

    @pytest.mark.asyncio
    async def test_arm_without_price_leaves_entry_for_buy(self, ladder_engine):
        ladder = await ladder_engine.arm(MINT)
        assert ladder.armed
        assert ladder.entry_price is None

    @pytest.mark.asyncio
    async def test_rearm_keeps_levels_and_resets_progress(self, ladder_engine, store):
        await _seed(store, levels=[2.0, 4.0], parts=[50.0, 50.0], executed=[True, True], armed=False)

        ladder = await ladder_engine.arm(MINT)

        assert ladder.levels == [2.0, 4.0]
        assert ladder.executed == [False, False]

    @pytest.mark.asyncio
    async def test_rearm_without_price_takes_entry_from_next_buy(
        self, store, executor, mock_feed, make_snapshot
    ):
        await _seed(store, levels=[2.0, 3.0], parts=[50.0, 50.0], executed=[True, True], armed=False)
        engine = LadderEngine(store, executor, mock_feed)

        ladder = await engine.arm(MINT)
        assert ladder.entry_price is None
        assert ladder.executed == [False, False]

        buy = await executor.buy(MINT, make_snapshot(base_address=MINT, pair_address=PAIR, price_usd=Decimal("5.00")))
        assert buy.success
        assert store.get_ladder(MINT).entry_price == Decimal("5.00")

        # flat against the new entry: nothing to sell
        mock_feed.prices[PAIR] = Decimal("5.00")
        report = await engine.tick()

        assert report.sells == []
        assert store.get_ladder(MINT).executed == [False, False]

    @pytest.mark.asyncio
    async def test_rearm_with_snapshot_replaces_entry(self, ladder_engine, store, make_snapshot):
        await _seed(store, armed=False)

        ladder = await ladder_engine.arm(MINT, make_snapshot(price_usd=Decimal("3.00"), pair_address=PAIR))

        assert ladder.entry_price == Decimal("3.00")

    @pytest.mark.asyncio
    async def test_disarm_keeps_configuration(self, ladder_engine, store):
        await _seed(store, executed=[True, False, False, False])

        ladder = await ladder_engine.disarm(MINT)

        assert not ladder.armed
        assert ladder.executed == [True, False, False, False]
        assert ladder.entry_price == Decimal("1.00")

    @pytest.mark.asyncio
    async def test_disarm_unknown_mint_is_noop(self, ladder_engine, store):
        assert await ladder_engine.disarm("Nobody") is None
        assert store.ladders() == {}


class TestEdit:
    @pytest.mark.asyncio
    async def test_valid_edit_resets_executed(self, ladder_engine, store):
        await _seed(store, executed=[True, False, False, False])

        ladder = await ladder_engine.edit(MINT, "1.5, 2.5", "60,40")

        assert ladder.levels == [1.5, 2.5]
        assert ladder.parts == [60.0, 40.0]
        assert ladder.executed == [False, False]
        assert ladder.armed
        assert ladder.entry_price == Decimal("1.00")
        assert ladder.pair_address == PAIR

    @pytest.mark.asyncio
    @pytest.mark.parametrize("levels,parts", [
        ("2,3,5", "40,20"),
        ("2,3", "60,50"),
        ("", ""),
        ("2,0", "10,10"),
        ("2,-1", "10,10"),
        ("2,x", "10,10"),
        ("2,3", "10,-1"),
        ("2,,3", "10,10,10"),
        ("2,nan", "10,10"),
    ])
    async def test_invalid_edit_leaves_state_unchanged(self, ladder_engine, store, levels, parts):
        await _seed(store, executed=[True, False, False, False])
        before = store.export_json()

        with pytest.raises(LadderValidationError):
            await ladder_engine.edit(MINT, levels, parts)

        assert store.export_json() == before

    @pytest.mark.asyncio
    async def test_validation_error_is_a_value_error(self, ladder_engine):
        with pytest.raises(ValueError):
            await ladder_engine.edit(MINT, "2,3", "60,50")


class TestTick:
    @pytest.mark.asyncio
    async def test_price_crossing_first_level_only(self, ladder_engine, store, mock_feed, recording_executor):
        await _seed(store, levels=[2.0, 3.0], parts=[40.0, 30.0])
        mock_feed.prices[PAIR] = Decimal("2.50")

        report = await ladder_engine.tick()

        assert recording_executor.sells == [(MINT, 40.0)]
        assert store.get_ladder(MINT).executed == [True, False]
        assert report.outcome == CycleOutcome.OK
        assert report.evaluated == [MINT]

    @pytest.mark.asyncio
    async def test_levels_fire_in_order_and_only_once(self, ladder_engine, store, mock_feed, recording_executor):
        await _seed(store, levels=[2.0, 3.0], parts=[40.0, 30.0])
        mock_feed.prices[PAIR] = Decimal("3.00")

        await ladder_engine.tick()
        await ladder_engine.tick()

        assert recording_executor.sells == [(MINT, 40.0), (MINT, 30.0)]
        assert store.get_ladder(MINT).executed == [True, True]

    @pytest.mark.asyncio
    async def test_failed_sell_still_marks_level(self, store, mock_feed, executor, mock_rpc):
        await _seed(store, levels=[2.0], parts=[100.0])
        mock_feed.prices[PAIR] = Decimal("2.0")
        engine = LadderEngine(store, executor, mock_feed)

        report = await engine.tick()

        assert report.sells[0].error_code == "zero_balance"
        assert store.get_ladder(MINT).executed == [True]

    @pytest.mark.asyncio
    async def test_skips_unpriced_and_incomplete_ladders(self, ladder_engine, store, mock_feed, recording_executor):
        await _seed(store)
        await store.update_ladder("NoEntry", lambda _: Ladder(armed=True, chain_id="solana", pair_address="P2"))
        await store.update_ladder("Disarmed", lambda _: Ladder(
            armed=False, entry_price=Decimal("1"), chain_id="solana", pair_address="P3"
        ))
        mock_feed.prices["P2"] = Decimal("100")
        mock_feed.prices["P3"] = Decimal("100")

        report = await ladder_engine.tick()

        # PairA has no price in the feed
        assert report.skipped == [MINT]
        assert recording_executor.sells == []
        assert mock_feed.pair_calls == 1

    @pytest.mark.asyncio
    async def test_zero_price_skipped(self, ladder_engine, store, mock_feed, recording_executor):
        await _seed(store)
        mock_feed.prices[PAIR] = Decimal("0")

        await ladder_engine.tick()

        assert recording_executor.sells == []

    @pytest.mark.asyncio
    async def test_feed_failure_is_classified(self, ladder_engine, store, mock_feed):
        await _seed(store)
        mock_feed.fail = True

        report = await ladder_engine.tick()

        assert report.outcome == CycleOutcome.FEED_ERROR
        assert MINT in report.errors

    @pytest.mark.asyncio
    async def test_disarm_mid_tick(self, ladder_engine, store, mock_feed, recording_executor):
        await _seed(store, levels=[2.0, 3.0], parts=[40.0, 30.0])
        mock_feed.prices[PAIR] = Decimal("3.5")
        recording_executor.gate = asyncio.Event()

        tick = asyncio.create_task(ladder_engine.tick())
        while not recording_executor.sells:
            await asyncio.sleep(0)
        await ladder_engine.disarm(MINT)
        recording_executor.gate.set()
        await tick

        # the in-flight tick finishes both levels it had already captured
        assert recording_executor.sells == [(MINT, 40.0), (MINT, 30.0)]

        recording_executor.gate = None
        await store.update_ladder(MINT, lambda ladder: ladder.model_copy(update={"executed": [False, False]}))
        await ladder_engine.tick()

        assert len(recording_executor.sells) == 2
        assert not store.get_ladder(MINT).armed

    @pytest.mark.asyncio
    async def test_edit_during_tick_is_not_overwritten(self, ladder_engine, store, mock_feed, recording_executor):
        await _seed(store, levels=[2.0, 3.0], parts=[40.0, 30.0])
        mock_feed.prices[PAIR] = Decimal("2.5")
        recording_executor.gate = asyncio.Event()

        tick = asyncio.create_task(ladder_engine.tick())
        while not recording_executor.sells:
            await asyncio.sleep(0)
        await ladder_engine.edit(MINT, "5,10", "50,50")
        recording_executor.gate.set()
        await tick

        assert store.get_ladder(MINT).executed == [False, False]

    @pytest.mark.asyncio
    async def test_rearm_during_tick_is_not_overwritten(
        self, ladder_engine, store, mock_feed, recording_executor, make_snapshot
    ):
        await _seed(store, levels=[2.0, 3.0], parts=[40.0, 30.0])
        mock_feed.prices[PAIR] = Decimal("2.5")
        recording_executor.gate = asyncio.Event()

        tick = asyncio.create_task(ladder_engine.tick())
        while not recording_executor.sells:
            await asyncio.sleep(0)
        await ladder_engine.arm(MINT, make_snapshot(price_usd=Decimal("2.5"), pair_address=PAIR))
        recording_executor.gate.set()
        await tick

        ladder = store.get_ladder(MINT)
        assert ladder.entry_price == Decimal("2.5")
        assert ladder.executed == [False, False]

    @pytest.mark.asyncio
    async def test_run_ticks_until_stopped(self, ladder_engine, store, mock_feed, recording_executor):
        await _seed(store, levels=[2.0], parts=[100.0])
        mock_feed.prices[PAIR] = Decimal("2")

        loop_task = asyncio.create_task(ladder_engine.run())
        for _ in range(100):
            if recording_executor.sells:
                break
            await asyncio.sleep(0.01)
        await ladder_engine.stop()
        await asyncio.wait_for(loop_task, timeout=1)

        assert recording_executor.sells == [(MINT, 100.0)]
