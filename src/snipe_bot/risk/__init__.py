"""Pre-trade risk gating."""

from .gate import RiskGate

__all__ = ["RiskGate"]
