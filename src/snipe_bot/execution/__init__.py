"""Trade execution: quotes, signer, executor and take-profit ladder."""

from .quotes import QuoteService
from .signer import Signer, DisconnectedSigner, RemoteSigner
from .engine import TradeExecutor
from .ladder import LadderEngine, TickReport

__all__ = [
    "QuoteService",
    "Signer",
    "DisconnectedSigner",
    "RemoteSigner",
    "TradeExecutor",
    "LadderEngine",
    "TickReport",
]
