"""Trade executor: one buy or sell attempt through every safety gate."""

import asyncio
import logging
import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional

from ..core.enums import Commitment, TradeSide, TradeStage
from ..core.errors import (
    AmountTooSmallError,
    AuthorityRiskError,
    BuildError,
    ConfirmationTimeout,
    ImpactExceededError,
    NoRouteError,
    NotConnectedError,
    RpcError,
    SimulationFailedError,
    TradeError,
    TransactionFailedError,
    ZeroBalanceError,
)
from ..core.models import (
    LAMPORTS_PER_SOL,
    WSOL_MINT,
    Ladder,
    MarketSnapshot,
    Quote,
    TradeResult,
)
from ..core.status import StatusBoard
from ..core.store import StateStore
from ..data.rpc import SolanaRpcClient
from ..risk.gate import RiskGate
from .quotes import QuoteService
from .signer import Signer

logger = logging.getLogger(__name__)


class TradeExecutor:
    """
    Orchestrates a single trade attempt.

    Buy:  RISK_CHECKING -> SIMULATING (optional) -> QUOTING -> IMPACT_CHECKING
          -> SUBMITTING -> CONFIRMING -> SUCCEEDED
    Sell: BALANCE_CHECKING -> QUOTING -> IMPACT_CHECKING -> SUBMITTING
          -> CONFIRMING -> SUCCEEDED

    Any failure ends in FAILED. Errors never escape ``buy``/``sell``: they
    come back as a failed TradeResult and a terminal status message.
    """

    def __init__(
        self,
        store: StateStore,
        risk_gate: RiskGate,
        quotes: QuoteService,
        rpc: SolanaRpcClient,
        signer: Signer,
        status: StatusBoard,
        config: Optional[Dict[str, Any]] = None,
    ):
        """Initialize trade executor."""
        defaults = self._default_config()
        if config:
            defaults.update(config)
        self.config = defaults
        self.store = store
        self.risk_gate = risk_gate
        self.quotes = quotes
        self.rpc = rpc
        self.signer = signer
        self.status = status
        logger.info("Trade executor initialized")

    @staticmethod
    def _default_config() -> Dict[str, Any]:
        return {
            "confirm_timeout_sec": 30.0,
            "confirm_poll_sec": 1.0,
            # pre-trade probe size, lamports
            "probe_lamports": max(math.floor(0.01 * LAMPORTS_PER_SOL), 1_000_000),
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def buy(self, mint: str, snapshot: Optional[MarketSnapshot] = None) -> TradeResult:
        """Swap the configured SOL amount into ``mint``."""
        result = TradeResult(side=TradeSide.BUY, mint=mint)
        await self._attempt(result, lambda: self._buy(result))
        if result.success:
            try:
                await self._capture_entry(mint, snapshot)
            except Exception as e:
                logger.error(f"Could not record ladder entry for {mint}: {e}")
        return result

    async def sell(self, mint: str, pct: Optional[float] = None) -> TradeResult:
        """Swap ``pct`` percent of the held ``mint`` balance back into SOL."""
        result = TradeResult(side=TradeSide.SELL, mint=mint)
        if pct is None:
            pct = self.store.settings.sell_pct
        return await self._attempt(result, lambda: self._sell(result, pct))

    # ------------------------------------------------------------------
    # Attempt boundary
    # ------------------------------------------------------------------

    async def _attempt(
        self,
        result: TradeResult,
        body: Callable[[], Awaitable[None]],
    ) -> TradeResult:
        label = f"{result.side.value} {result.mint}"
        try:
            await body()
        except TradeError as e:
            self._fail(result, e.code, str(e))
            logger.warning(f"{label} rejected at {result.failed_stage.value}: {e}")
        except Exception as e:
            self._fail(result, "error", str(e))
            logger.error(f"{label} failed at {result.failed_stage.value}: {e}")
        else:
            result.stage = TradeStage.SUCCEEDED
            result.success = True
        finally:
            result.finished_at = datetime.now(timezone.utc)

        await self.status.post(self._terminal_message(result))
        return result

    @staticmethod
    def _fail(result: TradeResult, code: str, message: str):
        result.failed_stage = result.stage
        result.stage = TradeStage.FAILED
        result.success = False
        result.error_code = code
        result.message = message

    @staticmethod
    def _terminal_message(result: TradeResult) -> str:
        label = f"{result.side.value} {result.mint}"
        if not result.success:
            return f"{label} failed ({result.error_code}): {result.message}"
        message = f"{label} OK: {result.signature}"
        if result.warning:
            message += f" (warning: {result.warning})"
        return message

    async def _enter(self, result: TradeResult, stage: TradeStage, message: str):
        result.stage = stage
        await self.status.post(f"{result.side.value} {result.mint}: {message}")

    # ------------------------------------------------------------------
    # Buy
    # ------------------------------------------------------------------

    async def _buy(self, result: TradeResult):
        owner = self._require_signer()
        settings = self.store.settings
        mint = result.mint

        await self._enter(result, TradeStage.RISK_CHECKING, "checking mint authorities")
        verdict = await self.risk_gate.assess(mint)
        if not verdict.is_safe:
            raise AuthorityRiskError(
                f"Authorities not relinquished (mint={verdict.mint_authority_relinquished}, "
                f"freeze={verdict.freeze_authority_relinquished})"
            )

        if settings.pre_trade_simulation:
            await self._enter(result, TradeStage.SIMULATING, "simulating probe swap")
            await self._simulate_probe(mint, owner, settings.slippage_bps)

        await self._enter(result, TradeStage.QUOTING, "quoting")
        lamports = math.floor(settings.buy_sol * LAMPORTS_PER_SOL)
        result.amount = lamports
        quote = await self.quotes.quote(WSOL_MINT, mint, lamports, settings.slippage_bps)

        await self._enter(result, TradeStage.IMPACT_CHECKING, "checking price impact")
        self._check_impact(result, quote, settings.max_impact_pct)

        await self._submit_and_confirm(result, quote, owner, settings.priority_fee_lamports, settings.commitment)

    async def _simulate_probe(self, mint: str, owner: str, slippage_bps: int):
        """Dry-run a small buy with zero priority fee."""
        probe = self.config["probe_lamports"]
        try:
            quote = await self.quotes.quote(WSOL_MINT, mint, probe, slippage_bps)
            transaction = await self.quotes.build_swap(quote, owner, priority_fee_lamports=0)
        except (NoRouteError, BuildError) as e:
            raise SimulationFailedError(f"Probe swap could not be prepared: {e}") from e
        simulation = await self.quotes.simulate(transaction)
        if not simulation.succeeded:
            raise SimulationFailedError(f"Probe swap simulation rejected: {simulation.error}")

    async def _capture_entry(self, mint: str, snapshot: Optional[MarketSnapshot]):
        """Record entry price and pair identity on an armed ladder that lacks one."""
        if snapshot is None:
            candidate = self.store.find_candidate(mint)
            snapshot = candidate.snapshot if candidate else None
        if snapshot is None or not snapshot.price_usd or snapshot.price_usd <= 0:
            return

        def apply(ladder: Optional[Ladder]) -> Optional[Ladder]:
            if ladder is None or not ladder.armed or ladder.entry_price is not None:
                return None
            return ladder.model_copy(update={
                "entry_price": snapshot.price_usd,
                "chain_id": snapshot.chain_id,
                "pair_address": snapshot.pair_address,
                "executed": [False] * len(ladder.levels),
            })

        ladder = await self.store.update_ladder(mint, apply)
        if ladder is not None and ladder.entry_price == snapshot.price_usd:
            logger.info(f"Ladder entry for {mint} set to {snapshot.price_usd}")

    # ------------------------------------------------------------------
    # Sell
    # ------------------------------------------------------------------

    async def _sell(self, result: TradeResult, pct: float):
        owner = self._require_signer()
        settings = self.store.settings
        mint = result.mint

        await self._enter(result, TradeStage.BALANCE_CHECKING, "reading token balance")
        balance, _decimals = await self.rpc.get_token_balance(owner, mint)
        if balance <= 0:
            raise ZeroBalanceError(f"No {mint} balance to sell")

        amount = self.sell_amount(balance, pct)
        if amount <= 0:
            raise AmountTooSmallError(f"{pct}% of {balance} rounds to zero")
        result.amount = amount

        await self._enter(result, TradeStage.QUOTING, f"quoting {pct}%")
        quote = await self.quotes.quote(mint, WSOL_MINT, amount, settings.slippage_bps)

        await self._enter(result, TradeStage.IMPACT_CHECKING, "checking price impact")
        self._check_impact(result, quote, settings.max_impact_pct)

        await self._submit_and_confirm(result, quote, owner, settings.priority_fee_lamports, settings.commitment)

    @staticmethod
    def sell_amount(balance: int, pct: float) -> int:
        """Integer share of ``balance``; the percent is floored and capped at 100."""
        whole_pct = min(100, max(0, math.floor(pct)))
        return balance * whole_pct // 100

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _require_signer(self) -> str:
        if not self.signer.connected or not self.signer.public_key:
            raise NotConnectedError("No wallet connected")
        return self.signer.public_key

    @staticmethod
    def _check_impact(result: TradeResult, quote: Quote, max_impact_pct: float):
        impact = quote.price_impact_percent
        result.price_impact_pct = impact
        ceiling = Decimal(str(max_impact_pct))
        if impact > ceiling:
            raise ImpactExceededError(f"Price impact {impact:.2f}% above limit {ceiling}%")

    async def _submit_and_confirm(
        self,
        result: TradeResult,
        quote: Quote,
        owner: str,
        priority_fee_lamports: int,
        commitment: Commitment,
    ):
        await self._enter(result, TradeStage.SUBMITTING, "building and submitting")
        transaction = await self.quotes.build_swap(quote, owner, priority_fee_lamports)
        result.signature = await self.signer.sign_and_send(transaction)
        logger.info(f"{result.side.value} {result.mint} submitted: {result.signature}")

        await self._enter(result, TradeStage.CONFIRMING, f"waiting for {commitment.value}")
        try:
            await self._wait_for_confirmation(result.signature, commitment)
            result.confirmed = True
        except (ConfirmationTimeout, RpcError) as e:
            result.warning = str(e)
            logger.warning(f"Confirmation of {result.signature} not observed: {e}")

    async def _wait_for_confirmation(self, signature: str, commitment: Commitment):
        """Poll signature status until ``commitment`` is reached or time runs out."""
        timeout = self.config["confirm_timeout_sec"]
        start_time = datetime.now()

        while (datetime.now() - start_time).total_seconds() < timeout:
            status = await self.rpc.get_signature_status(signature)
            if status:
                if status.get("err") is not None:
                    raise TransactionFailedError(f"Transaction {signature} landed with error {status['err']}")
                if commitment.satisfied_by(status.get("confirmationStatus") or ""):
                    return
            await asyncio.sleep(self.config["confirm_poll_sec"])

        raise ConfirmationTimeout(f"No {commitment.value} confirmation within {timeout}s")
