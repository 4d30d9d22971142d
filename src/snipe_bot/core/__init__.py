"""Core module: models, errors and shared state for the sniping engine."""

from .models import (
    MarketSnapshot, ScoredCandidate, FilterConfig, RiskVerdict, Quote,
    SwapTransaction, SimulationResult, Ladder, TradeResult, Settings,
)
from .enums import TradeSide, TradeStage, Commitment, CycleOutcome
from .state_lock import StateLock, VersionedState
from .store import StateStore, CandidateList
from .status import StatusBoard

__all__ = [
    "MarketSnapshot",
    "ScoredCandidate",
    "FilterConfig",
    "RiskVerdict",
    "Quote",
    "SwapTransaction",
    "SimulationResult",
    "Ladder",
    "TradeResult",
    "Settings",
    "TradeSide",
    "TradeStage",
    "Commitment",
    "CycleOutcome",
    "StateLock",
    "VersionedState",
    "StateStore",
    "CandidateList",
    "StatusBoard",
]
