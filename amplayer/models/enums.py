"""
Enumerations for layer coordination.

This module defines type-safe enumerations constraining allocation policies,
conflict-resolution policies, signal actions, and correlation strength
buckets. All inherit from str to allow seamless CLI argument parsing and
JSON serialization.
"""

from enum import Enum


class CapitalPolicy(str, Enum):
    """
    Capital allocation policy for a layer.

    Attributes:
        EQUAL: Split capital evenly across enabled strategies.
        WEIGHTED: Split by each member's configured static weight.
        DYNAMIC: Split by recent risk-adjusted performance score.
        KELLY: Split by clamped fractional Kelly sizing.

    Examples:
        >>> CapitalPolicy("kelly")
        <CapitalPolicy.KELLY: 'kelly'>
        >>> CapitalPolicy.EQUAL == "equal"
        True
    """

    EQUAL = "equal"
    WEIGHTED = "weighted"
    DYNAMIC = "dynamic"
    KELLY = "kelly"


class ConflictPolicy(str, Enum):
    """
    Conflict-resolution policy for simultaneous signals on one instrument.

    Attributes:
        PRIORITY: Highest-priority enabled member decides.
        VOTING: Plurality of member actions; ties resolve to HOLD.
        NET_SIGNAL: Sign of the (optionally capital-weighted) signal sum.
    """

    PRIORITY = "priority"
    VOTING = "voting"
    NET_SIGNAL = "net_signal"


class SignalAction(str, Enum):
    """
    Trading action carried by a signal.

    Examples:
        >>> SignalAction.BUY.value
        'BUY'
        >>> SignalAction("SELL").direction
        -1
    """

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"

    @property
    def direction(self) -> int:
        """Return +1 for BUY, -1 for SELL, 0 for HOLD."""
        if self is SignalAction.BUY:
            return 1
        if self is SignalAction.SELL:
            return -1
        return 0

    @classmethod
    def from_direction(cls, value: float) -> "SignalAction":
        """Map a signed score back to an action (zero is HOLD)."""
        if value > 0:
            return cls.BUY
        if value < 0:
            return cls.SELL
        return cls.HOLD


class CorrelationStrength(str, Enum):
    """Bucket for the absolute value of a pairwise correlation."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
