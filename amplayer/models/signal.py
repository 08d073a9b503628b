"""
Immutable strategy signal events.

Signals carry only the action a strategy wants on one instrument at one
instant. The UTC calendar day of the timestamp is the single simultaneity
rule: it keys both the daily series used for correlation and the batches
handed to conflict resolution.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime

from amplayer.models.enums import SignalAction


def signal_bucket(timestamp: datetime) -> date:
    """
    Return the simultaneity bucket (UTC calendar day) for a timestamp.

    Args:
        timestamp: Timezone-aware instant.

    Returns:
        The UTC calendar date containing the instant.

    Examples:
        >>> from datetime import datetime, timedelta, timezone
        >>> signal_bucket(datetime(2025, 1, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5))))
        datetime.date(2025, 1, 2)
    """
    return timestamp.astimezone(UTC).date()


@dataclass(frozen=True)
class SignalEvent:
    """
    One action emitted by one strategy on one instrument.

    Attributes:
        strategy_id: Emitting strategy identifier.
        symbol: Instrument symbol (e.g., "AAPL").
        action: BUY, SELL or HOLD.
        timestamp: Emission time (timezone-aware).

    Examples:
        >>> from datetime import datetime, timezone
        >>> event = SignalEvent(
        ...     strategy_id="momentum",
        ...     symbol="AAPL",
        ...     action=SignalAction.BUY,
        ...     timestamp=datetime(2025, 1, 1, 14, 30, tzinfo=timezone.utc),
        ... )
        >>> event.value
        1
    """

    strategy_id: str
    symbol: str
    action: SignalAction
    timestamp: datetime

    def __post_init__(self) -> None:
        """Validate and normalize signal fields."""
        if not self.strategy_id:
            raise ValueError("strategy_id must be non-empty string")
        if not self.symbol:
            raise ValueError("Symbol must be non-empty string")
        if not isinstance(self.action, SignalAction):
            # frozen dataclass: bypass __setattr__ to coerce "BUY" -> SignalAction.BUY
            object.__setattr__(self, "action", SignalAction(self.action))
        if self.timestamp.tzinfo is None:
            raise ValueError("Timestamp must be timezone-aware (UTC)")

    @property
    def value(self) -> int:
        """Return the signed numeric value of the action."""
        return self.action.direction

    @property
    def bucket(self) -> date:
        """Return the UTC calendar day this signal belongs to."""
        return signal_bucket(self.timestamp)
