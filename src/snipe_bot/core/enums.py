"""Core enumerations for the sniping engine."""

from enum import Enum


class TradeSide(str, Enum):
    """Swap direction relative to SOL."""
    BUY = "BUY"
    SELL = "SELL"


class TradeStage(str, Enum):
    """Stages of a single trade attempt, in the order they are entered."""
    IDLE = "idle"
    RISK_CHECKING = "risk_checking"
    BALANCE_CHECKING = "balance_checking"
    SIMULATING = "simulating"
    QUOTING = "quoting"
    IMPACT_CHECKING = "impact_checking"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Commitment(str, Enum):
    """Confirmation commitment levels, weakest first."""
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"

    @property
    def rank(self) -> int:
        return _COMMITMENT_RANK[self]

    def satisfied_by(self, status: str) -> bool:
        """Whether an RPC confirmationStatus string meets this level."""
        try:
            return Commitment(status).rank >= self.rank
        except ValueError:
            return False


_COMMITMENT_RANK = {
    Commitment.PROCESSED: 0,
    Commitment.CONFIRMED: 1,
    Commitment.FINALIZED: 2,
}


class CycleOutcome(str, Enum):
    """Classification of one background cycle (scan or ladder tick)."""
    OK = "ok"
    FEED_ERROR = "feed_error"
    STALE = "stale"
    ERROR = "error"
