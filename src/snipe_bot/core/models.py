"""Core data models for the sniping engine."""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .enums import TradeSide, TradeStage, Commitment

WSOL_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = 1_000_000_000

DEFAULT_LADDER_LEVELS = [2.0, 3.0, 5.0, 10.0]
DEFAULT_LADDER_PARTS = [40.0, 20.0, 20.0, 20.0]

PRICE_CHANGE_WINDOWS = ("m5", "m15", "h1", "h6", "h24")


def _number(value: Any) -> Optional[float]:
    """Return value if it is a real number, else None (strings do not count)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


class MarketSnapshot(BaseModel):
    """A tradable pair as seen by the market feed at scan time."""

    model_config = ConfigDict(frozen=True)

    chain_id: Optional[str] = Field(default=None, description="Chain identifier, e.g. 'solana'")
    pair_address: Optional[str] = Field(default=None, description="Pair (pool) address")
    dex_id: Optional[str] = Field(default=None, description="DEX the pair trades on")

    base_address: Optional[str] = Field(default=None, description="Base token mint")
    base_symbol: Optional[str] = Field(default=None, description="Base token symbol")
    quote_address: Optional[str] = Field(default=None, description="Quote token mint")
    quote_symbol: Optional[str] = Field(default=None, description="Quote token symbol")

    price_usd: Optional[Decimal] = Field(default=None, description="Price in USD, arbitrary precision")
    fdv: Optional[float] = Field(default=None, description="Fully-diluted valuation, USD")
    liquidity_usd: Optional[float] = Field(default=None, description="Pool liquidity, USD")
    volume_24h: Optional[float] = Field(default=None, description="24h volume, USD")
    price_change: Dict[str, Optional[float]] = Field(
        default_factory=dict, description="Percent change keyed by window (m5, m15, h1, h6, h24)"
    )
    pair_created_at: Optional[datetime] = Field(default=None, description="Pair creation time (UTC)")

    @property
    def change_h1(self) -> Optional[float]:
        return self.price_change.get("h1")

    def age_minutes(self, now: datetime) -> Optional[float]:
        """Minutes since pair creation, or None when creation time is unknown."""
        if self.pair_created_at is None:
            return None
        return (now - self.pair_created_at).total_seconds() / 60.0

    @classmethod
    def from_feed(cls, record: Dict[str, Any]) -> "MarketSnapshot":
        """Build a snapshot from a DexScreener pair record.

        Missing or non-numeric values become None rather than zero so that
        filters can tell "absent" apart from "small".
        """
        base = record.get("baseToken") or {}
        quote = record.get("quoteToken") or {}
        liquidity = record.get("liquidity") or {}
        volume = record.get("volume") or {}
        change = record.get("priceChange") or {}

        created_ms = _number(record.get("pairCreatedAt"))
        created_at = (
            datetime.fromtimestamp(created_ms / 1000, tz=timezone.utc)
            if created_ms is not None
            else None
        )

        return cls(
            chain_id=record.get("chainId"),
            pair_address=record.get("pairAddress"),
            dex_id=record.get("dexId"),
            base_address=base.get("address"),
            base_symbol=base.get("symbol"),
            quote_address=quote.get("address"),
            quote_symbol=quote.get("symbol"),
            price_usd=_decimal(record.get("priceUsd")),
            fdv=_number(record.get("fdv")),
            liquidity_usd=_number(liquidity.get("usd")),
            volume_24h=_number(volume.get("h24")),
            price_change={w: _number(change.get(w)) for w in PRICE_CHANGE_WINDOWS},
            pair_created_at=created_at,
        )


class ScoredCandidate(BaseModel):
    """A snapshot with its composite score for the current scan cycle."""

    model_config = ConfigDict(frozen=True)

    snapshot: MarketSnapshot
    score: float = Field(ge=0.0, le=100.0, description="Composite score, one decimal place")

    @property
    def mint(self) -> Optional[str]:
        return self.snapshot.base_address


class FilterConfig(BaseModel):
    """Inclusion/exclusion thresholds applied to each snapshot."""

    max_age_minutes: float = Field(default=90, ge=0, description="0 disables the age filter")
    min_liquidity_usd: float = Field(default=4000)
    min_volume_24h: float = Field(default=10000)
    max_fdv: float = Field(default=600000)
    min_change_h1: float = Field(default=-5)
    max_change_h1: float = Field(default=40)
    allow_list: List[str] = Field(default_factory=list)
    deny_list: List[str] = Field(default_factory=list)


class RiskVerdict(BaseModel):
    """Authority state of a mint at the time of a trade attempt."""

    mint_authority_relinquished: bool
    freeze_authority_relinquished: bool

    @property
    def is_safe(self) -> bool:
        return self.mint_authority_relinquished and self.freeze_authority_relinquished


class Quote(BaseModel):
    """Swap quote. Only valid for the request that produced it."""

    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    other_amount_threshold: int = 0
    slippage_bps: int
    price_impact_pct: Decimal = Field(default=Decimal("0"), description="Impact as a fraction")
    route_plan: List[Any] = Field(default_factory=list)
    raw: Dict[str, Any] = Field(default_factory=dict, description="Provider payload, echoed back on build")

    @property
    def price_impact_percent(self) -> Decimal:
        return self.price_impact_pct * 100

    @classmethod
    def from_provider(cls, data: Dict[str, Any]) -> "Quote":
        return cls(
            input_mint=data["inputMint"],
            output_mint=data["outputMint"],
            in_amount=int(data["inAmount"]),
            out_amount=int(data["outAmount"]),
            other_amount_threshold=int(data.get("otherAmountThreshold") or 0),
            slippage_bps=int(data.get("slippageBps") or 0),
            price_impact_pct=_decimal(data.get("priceImpactPct")) or Decimal("0"),
            route_plan=list(data.get("routePlan") or []),
            raw=data,
        )


class SwapTransaction(BaseModel):
    """Unsigned swap transaction as returned by the build step."""

    payload_b64: str = Field(description="Base64-encoded versioned transaction")
    last_valid_block_height: Optional[int] = None


class SimulationResult(BaseModel):
    """Outcome of a dry run against current chain state."""

    succeeded: bool
    logs: List[str] = Field(default_factory=list)
    error: Optional[Any] = None


class Ladder(BaseModel):
    """Take-profit ladder for one base mint."""

    levels: List[float] = Field(default_factory=lambda: list(DEFAULT_LADDER_LEVELS))
    parts: List[float] = Field(default_factory=lambda: list(DEFAULT_LADDER_PARTS))
    armed: bool = False
    entry_price: Optional[Decimal] = None
    executed: Optional[List[bool]] = None
    chain_id: Optional[str] = None
    pair_address: Optional[str] = None
    # bumped on every arm and edit
    generation: int = Field(default=0, ge=0)

    @field_validator("levels")
    @classmethod
    def validate_levels(cls, v):
        if any(level <= 0 for level in v):
            raise ValueError("Ladder levels must be greater than zero")
        return v

    @field_validator("parts")
    @classmethod
    def validate_parts(cls, v):
        if any(part < 0 for part in v):
            raise ValueError("Ladder parts must be non-negative")
        if sum(v) > 100:
            raise ValueError("Ladder parts must sum to at most 100")
        return v

    @model_validator(mode="after")
    def validate_lengths(self):
        if len(self.levels) != len(self.parts):
            raise ValueError("Ladder levels and parts must have equal length")
        if self.executed is not None and len(self.executed) != len(self.levels):
            raise ValueError("Ladder executed vector must match levels length")
        return self

    @property
    def has_pair(self) -> bool:
        return bool(self.chain_id and self.pair_address)

    def executed_flags(self) -> List[bool]:
        return list(self.executed) if self.executed is not None else [False] * len(self.levels)

    def target_price(self, index: int) -> Decimal:
        return self.entry_price * Decimal(str(self.levels[index]))


class TradeResult(BaseModel):
    """Outcome of one buy or sell attempt."""

    side: TradeSide
    mint: str
    success: bool = False
    stage: TradeStage = TradeStage.IDLE
    failed_stage: Optional[TradeStage] = Field(default=None, description="Stage in which the attempt failed")
    signature: Optional[str] = None
    error_code: Optional[str] = None
    message: str = ""
    warning: Optional[str] = None
    confirmed: bool = False
    price_impact_pct: Optional[Decimal] = Field(default=None, description="Quoted impact in percent")
    amount: Optional[int] = Field(default=None, description="Input amount in base units")
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None


class Settings(BaseModel):
    """Flat, exportable settings bag, including the full ladder map."""

    endpoint: str = Field(default="https://api.mainnet-beta.solana.com", description="RPC endpoint")
    chain_id: str = Field(default="solana")
    auto_scan: bool = True
    scan_interval_sec: float = Field(default=12, gt=0)

    # filters
    max_age_minutes: float = Field(default=90, ge=0)
    min_liquidity_usd: float = 4000
    min_volume_24h: float = 10000
    max_fdv: float = 600000
    min_change_h1: float = -5
    max_change_h1: float = 40

    # trading
    slippage_bps: int = Field(default=350, ge=0)
    buy_sol: float = Field(default=0.1, ge=0)
    sell_pct: float = Field(default=25, ge=0, le=100)
    max_impact_pct: float = Field(default=12, ge=0)
    priority_fee_lamports: int = Field(default=2500, ge=0)
    commitment: Commitment = Commitment.CONFIRMED
    pre_trade_simulation: bool = True

    # lists
    allow_list: List[str] = Field(default_factory=list)
    deny_list: List[str] = Field(default_factory=list)

    ladders: Dict[str, Ladder] = Field(default_factory=dict)

    def filter_config(self) -> FilterConfig:
        return FilterConfig(
            max_age_minutes=self.max_age_minutes,
            min_liquidity_usd=self.min_liquidity_usd,
            min_volume_24h=self.min_volume_24h,
            max_fdv=self.max_fdv,
            min_change_h1=self.min_change_h1,
            max_change_h1=self.max_change_h1,
            allow_list=list(self.allow_list),
            deny_list=list(self.deny_list),
        )
