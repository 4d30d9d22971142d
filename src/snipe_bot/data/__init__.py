"""Network collaborators: market feed and RPC node."""

from .http import JsonHttpClient, HttpResult
from .feed import MarketFeed, DexScreenerFeed
from .rpc import SolanaRpcClient

__all__ = [
    "JsonHttpClient",
    "HttpResult",
    "MarketFeed",
    "DexScreenerFeed",
    "SolanaRpcClient",
]
