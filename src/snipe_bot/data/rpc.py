"""Solana JSON-RPC collaborator: account lookups, simulation, signature status."""

import itertools
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..core.errors import RpcError
from .http import JsonHttpClient

logger = logging.getLogger(__name__)

DEFAULT_RPC_ENDPOINT = "https://api.mainnet-beta.solana.com"


class SolanaRpcClient:
    """Minimal JSON-RPC 2.0 client over aiohttp."""

    def __init__(
        self,
        endpoint: str = DEFAULT_RPC_ENDPOINT,
        http: Optional[JsonHttpClient] = None,
        commitment: str = "confirmed",
    ):
        """Initialize RPC client."""
        self.endpoint = endpoint
        self.commitment = commitment
        self._http = http or JsonHttpClient(timeout_seconds=15.0)
        self._ids = itertools.count(1)
        logger.info(f"Solana RPC client initialized ({endpoint})")

    async def call(self, method: str, params: List[Any]) -> Any:
        """Invoke an RPC method and return its ``result``; raise RpcError on failure."""
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        result = await self._http.post_json(self.endpoint, payload, max_attempts=2)
        if not result.ok:
            raise RpcError(f"{method} failed: {result.error}")
        data = result.data
        if not isinstance(data, dict):
            raise RpcError(f"{method} returned a non-object response")
        if data.get("error"):
            raise RpcError(f"{method} error: {data['error']}")
        return data.get("result")

    async def get_mint_authorities(self, mint: str) -> Optional[Dict[str, Optional[str]]]:
        """
        Mint and freeze authority of a token mint.

        Returns None when the account does not exist or is not a parsed mint
        record; the caller decides how to treat that.
        """
        result = await self.call(
            "getAccountInfo",
            [mint, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            return None
        data = value.get("data")
        parsed = data.get("parsed") if isinstance(data, dict) else None
        info = parsed.get("info") if isinstance(parsed, dict) else None
        if not isinstance(info, dict):
            return None
        if parsed.get("type") not in (None, "mint"):
            return None
        return {
            "mint_authority": info.get("mintAuthority"),
            "freeze_authority": info.get("freezeAuthority"),
        }

    async def get_token_balance(self, owner: str, mint: str) -> Tuple[int, int]:
        """Total balance of ``mint`` held by ``owner`` in base units, and decimals."""
        result = await self.call(
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        accounts = result.get("value") if isinstance(result, dict) else None
        total = 0
        decimals = 0
        for account in accounts or []:
            try:
                token_amount = account["account"]["data"]["parsed"]["info"]["tokenAmount"]
                decimals = int(token_amount.get("decimals", decimals))
                total += int(token_amount["amount"])
            except (KeyError, TypeError, ValueError) as e:
                raise RpcError(f"Unparseable token account for {mint}: {e}") from e
        return total, decimals

    async def simulate_transaction(self, payload_b64: str) -> Dict[str, Any]:
        """Dry-run a base64 transaction without signature verification."""
        result = await self.call(
            "simulateTransaction",
            [
                payload_b64,
                {
                    "encoding": "base64",
                    "sigVerify": False,
                    "replaceRecentBlockhash": True,
                    "commitment": self.commitment,
                },
            ],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            raise RpcError("simulateTransaction returned no value")
        return value

    async def get_signature_status(self, signature: str) -> Optional[Dict[str, Any]]:
        """Status entry for a signature, or None if the node has not seen it yet."""
        result = await self.call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": False}],
        )
        statuses = result.get("value") if isinstance(result, dict) else None
        if not statuses:
            return None
        return statuses[0]

    async def close(self):
        await self._http.close()
