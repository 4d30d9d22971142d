"""Pytest configuration and fixtures."""

import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from snipe_bot.core.errors import FeedError, NoRouteError
from snipe_bot.core.models import MarketSnapshot, Quote, Settings, SwapTransaction, SimulationResult
from snipe_bot.core.status import StatusBoard
from snipe_bot.core.store import StateStore
from snipe_bot.data.feed import MarketFeed
from snipe_bot.execution.engine import TradeExecutor
from snipe_bot.execution.signer import Signer
from snipe_bot.risk.gate import RiskGate

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
WALLET = "Wallet1111111111111111111111111111111111111"
MINT = "Mint111111111111111111111111111111111111111"
PAIR = "Pair111111111111111111111111111111111111111"


def build_snapshot(**overrides) -> MarketSnapshot:
    """Fresh, liquid, modestly valued pair that passes default filters."""
    fields = dict(
        chain_id="solana",
        pair_address=PAIR,
        dex_id="raydium",
        base_address=MINT,
        base_symbol="MEME",
        quote_address="So11111111111111111111111111111111111111112",
        quote_symbol="SOL",
        price_usd=Decimal("1.00"),
        fdv=250_000.0,
        liquidity_usd=50_000.0,
        volume_24h=120_000.0,
        price_change={"m5": 1.0, "m15": None, "h1": 10.0, "h6": 20.0, "h24": 30.0},
        pair_created_at=NOW - timedelta(minutes=30),
    )
    fields.update(overrides)
    return MarketSnapshot(**fields)


class MockFeed(MarketFeed):
    """In-memory market feed."""

    def __init__(self, pairs: Optional[List[MarketSnapshot]] = None):
        self.pairs = list(pairs or [])
        self.prices: Dict[str, Decimal] = {}
        self.fail = False
        self.pair_calls = 0

    async def fetch_pairs(self, chain_id):
        if self.fail:
            raise FeedError("feed down")
        return list(self.pairs)

    async def fetch_pair(self, chain_id, pair_address):
        self.pair_calls += 1
        if self.fail:
            raise FeedError("feed down")
        if pair_address not in self.prices:
            return None
        return build_snapshot(pair_address=pair_address, price_usd=self.prices[pair_address])


class MockRpc:
    """RPC node stand-in with per-mint authorities and balances."""

    def __init__(self):
        self.endpoint = "http://rpc.test"
        self.authorities: Dict[str, Dict[str, Optional[str]]] = {}
        self.balances: Dict[str, int] = {}
        self.confirmation_status: Optional[str] = "confirmed"
        self.status_error = None
        self.simulation = {"err": None, "logs": ["Program log: ok"]}
        self.authority_calls = 0

    async def get_mint_authorities(self, mint):
        self.authority_calls += 1
        return self.authorities.get(mint, {"mint_authority": None, "freeze_authority": None})

    async def get_token_balance(self, owner, mint):
        return self.balances.get(mint, 0), 6

    async def simulate_transaction(self, payload_b64):
        return self.simulation

    async def get_signature_status(self, signature):
        if self.confirmation_status is None:
            return None
        return {"confirmationStatus": self.confirmation_status, "err": self.status_error}

    async def close(self):
        pass


class MockQuotes:
    """Quote service stand-in that records every call."""

    def __init__(self, rpc: MockRpc):
        self.rpc = rpc
        self.impact = Decimal("0.01")
        self.no_route = False
        self.quote_calls: List[dict] = []
        self.build_calls: List[dict] = []
        self.simulate_calls = 0

    async def quote(self, input_mint, output_mint, amount, slippage_bps):
        self.quote_calls.append(
            {"input": input_mint, "output": output_mint, "amount": amount, "slippage_bps": slippage_bps}
        )
        if self.no_route:
            raise NoRouteError("no route")
        return Quote(
            input_mint=input_mint,
            output_mint=output_mint,
            in_amount=amount,
            out_amount=amount * 2,
            slippage_bps=slippage_bps,
            price_impact_pct=self.impact,
            raw={"inAmount": str(amount)},
        )

    async def build_swap(self, quote, trader_public_key, priority_fee_lamports, wrap_and_unwrap_sol=True):
        self.build_calls.append({"amount": quote.in_amount, "priority_fee": priority_fee_lamports})
        return SwapTransaction(payload_b64="AQID")

    async def simulate(self, transaction):
        self.simulate_calls += 1
        value = await self.rpc.simulate_transaction(transaction.payload_b64)
        return SimulationResult(succeeded=value.get("err") is None, logs=value.get("logs") or [])

    async def close(self):
        pass


class MockSigner(Signer):
    """Signer that hands out sequential signatures."""

    def __init__(self, connected: bool = True):
        self._connected = connected
        self._counter = itertools.count(1)
        self.sent: List[SwapTransaction] = []

    @property
    def connected(self):
        return self._connected

    @property
    def public_key(self):
        return WALLET if self._connected else None

    async def sign_and_send(self, transaction):
        self.sent.append(transaction)
        return f"sig-{next(self._counter)}"


@pytest.fixture
def make_snapshot():
    return build_snapshot


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def snapshot():
    return build_snapshot()


@pytest.fixture
def store():
    return StateStore(Settings())


@pytest.fixture
def status_board():
    return StatusBoard()


@pytest.fixture
def mock_feed():
    return MockFeed()


@pytest.fixture
def mock_rpc():
    return MockRpc()


@pytest.fixture
def mock_quotes(mock_rpc):
    return MockQuotes(mock_rpc)


@pytest.fixture
def mock_signer():
    return MockSigner()


@pytest.fixture
def executor(store, mock_rpc, mock_quotes, mock_signer, status_board):
    return TradeExecutor(
        store,
        RiskGate(mock_rpc),
        mock_quotes,
        mock_rpc,
        mock_signer,
        status_board,
        {"confirm_timeout_sec": 0.2, "confirm_poll_sec": 0.01},
    )
