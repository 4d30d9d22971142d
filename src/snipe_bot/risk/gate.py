"""Pre-trade authority check on a token mint."""

import logging

from ..core.errors import MintLookupError, RpcError
from ..core.models import RiskVerdict
from ..data.rpc import SolanaRpcClient

logger = logging.getLogger(__name__)


class RiskGate:
    """
    Reports whether a mint's mint and freeze authorities are relinquished.

    Every call goes to the RPC node; verdicts are never cached because an
    authority can be set or dropped between two trades.
    """

    def __init__(self, rpc: SolanaRpcClient):
        """Initialize risk gate."""
        self.rpc = rpc
        logger.info("Risk gate initialized")

    async def assess(self, mint: str) -> RiskVerdict:
        """
        Fetch the mint record and build a verdict.

        Raises:
            MintLookupError: the RPC call failed or the account is not a
                parsable mint. Callers must treat this as NOT safe.
        """
        try:
            authorities = await self.rpc.get_mint_authorities(mint)
        except RpcError as e:
            raise MintLookupError(f"Mint lookup failed for {mint}: {e}") from e
        if authorities is None:
            raise MintLookupError(f"No parsable mint record for {mint}")

        verdict = RiskVerdict(
            mint_authority_relinquished=authorities.get("mint_authority") is None,
            freeze_authority_relinquished=authorities.get("freeze_authority") is None,
        )
        logger.debug(
            f"Risk verdict for {mint}: mint_authority_relinquished="
            f"{verdict.mint_authority_relinquished}, freeze_authority_relinquished="
            f"{verdict.freeze_authority_relinquished}"
        )
        return verdict
