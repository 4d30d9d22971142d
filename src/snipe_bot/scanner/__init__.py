"""Market scanner: scoring, filtering and the recurring scan loop."""

from .market_scanner import Scanner, ScanReport
from .scoring import ScoringEngine

__all__ = ["Scanner", "ScanReport", "ScoringEngine"]
