"""Swap quote, swap build and dry-run simulation (Jupiter v6 + RPC)."""

import logging
from typing import Any, Dict, Optional

from ..core.errors import BuildError, NoRouteError, RpcError, SimulationFailedError
from ..core.models import Quote, SimulationResult, SwapTransaction
from ..data.http import JsonHttpClient
from ..data.rpc import SolanaRpcClient

logger = logging.getLogger(__name__)

DEFAULT_JUPITER_URL = "https://quote-api.jup.ag/v6"


class QuoteService:
    """
    Stateless wrapper around the aggregator and the simulate RPC call.

    A Quote is only valid for the request that produced it; nothing here
    caches quotes or built transactions.
    """

    def __init__(
        self,
        rpc: SolanaRpcClient,
        base_url: Optional[str] = None,
        http: Optional[JsonHttpClient] = None,
    ):
        """Initialize quote service."""
        self.rpc = rpc
        self.base_url = (base_url or DEFAULT_JUPITER_URL).rstrip("/")
        self._http = http or JsonHttpClient(timeout_seconds=10.0)
        logger.info(f"Quote service initialized ({self.base_url})")

    async def quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int,
    ) -> Quote:
        """Best route for ``amount`` base units of ``input_mint``.

        Raises:
            NoRouteError: provider error or no route returned.
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(int(amount)),
            "slippageBps": str(int(slippage_bps)),
            "onlyDirectRoutes": "false",
        }
        result = await self._http.get_json(f"{self.base_url}/quote", params=params)
        if not result.ok:
            raise NoRouteError(f"Quote failed for {input_mint} -> {output_mint}: {result.error}")

        data = result.data
        if not isinstance(data, dict) or data.get("error") or not data.get("outAmount"):
            detail = data.get("error") if isinstance(data, dict) else "non-object payload"
            raise NoRouteError(f"No route for {input_mint} -> {output_mint}: {detail or 'no outAmount'}")

        try:
            quote = Quote.from_provider(data)
        except (KeyError, TypeError, ValueError) as e:
            raise NoRouteError(f"Unusable quote payload: {e}") from e

        logger.debug(
            f"Quote {quote.in_amount} {input_mint} -> {quote.out_amount} {output_mint} "
            f"(impact {quote.price_impact_percent}%)"
        )
        return quote

    async def build_swap(
        self,
        quote: Quote,
        trader_public_key: str,
        priority_fee_lamports: int,
        wrap_and_unwrap_sol: bool = True,
    ) -> SwapTransaction:
        """Ask the aggregator for an unsigned versioned transaction.

        Raises:
            BuildError: provider error or no ``swapTransaction`` in the response.
        """
        body: Dict[str, Any] = {
            "quoteResponse": quote.raw,
            "userPublicKey": trader_public_key,
            "wrapAndUnwrapSol": wrap_and_unwrap_sol,
            "useSharedAccounts": True,
            "asLegacyTransaction": False,
            "dynamicComputeUnitLimit": True,
            "prioritizationFeeLamports": int(priority_fee_lamports),
        }
        result = await self._http.post_json(f"{self.base_url}/swap", body)
        if not result.ok:
            raise BuildError(f"Swap build failed: {result.error}")

        data = result.data
        payload = data.get("swapTransaction") if isinstance(data, dict) else None
        if not payload:
            detail = data.get("error") if isinstance(data, dict) else "non-object payload"
            raise BuildError(f"Swap build returned no transaction: {detail or 'missing swapTransaction'}")

        return SwapTransaction(
            payload_b64=payload,
            last_valid_block_height=data.get("lastValidBlockHeight"),
        )

    async def simulate(self, transaction: SwapTransaction) -> SimulationResult:
        """Dry-run against current chain state.

        Raises:
            SimulationFailedError: the RPC node could not run the simulation.
        """
        try:
            value = await self.rpc.simulate_transaction(transaction.payload_b64)
        except RpcError as e:
            raise SimulationFailedError(f"Simulation unavailable: {e}") from e

        error = value.get("err")
        return SimulationResult(
            succeeded=error is None,
            logs=list(value.get("logs") or []),
            error=error,
        )

    async def close(self):
        await self._http.close()
