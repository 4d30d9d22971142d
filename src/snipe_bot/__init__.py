"""
DEX Sniping Engine with Safety-First Execution

Scans a market feed for fresh pairs, ranks them, and trades them through
authority checks, a dry-run simulation and a price-impact ceiling. Armed
take-profit ladders sell partial positions as price multiples are reached.
"""

__version__ = "0.1.0"
__author__ = "Snipe Bot Team"

from .core.models import MarketSnapshot, ScoredCandidate, Ladder, Settings, TradeResult
from .core.enums import TradeSide, TradeStage
from .risk.gate import RiskGate
from .execution.engine import TradeExecutor

__all__ = [
    "MarketSnapshot",
    "ScoredCandidate",
    "Ladder",
    "Settings",
    "TradeResult",
    "TradeSide",
    "TradeStage",
    "RiskGate",
    "TradeExecutor",
]
