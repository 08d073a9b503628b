"""Performance input models for capital allocation.

PerformanceSnapshot is the read-only summary consumed by the dynamic and
Kelly policies. DailyPerformanceRecord is the raw per-day row the summariser
reduces into a snapshot.
"""
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PerformanceSnapshot(BaseModel):
    """Trailing performance summary for one strategy.

    Attributes:
        win_rate: Fraction of winning trades in [0, 1], None if unknown
        avg_win: Average winning trade amount (positive), None if unknown
        avg_loss: Average losing trade magnitude (positive), None if unknown
        sharpe: Sharpe-like risk-adjusted return ratio
        period_return: Return over the trailing period as a fraction
        max_drawdown: Maximum drawdown over the period as a fraction
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    win_rate: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    avg_win: Optional[float] = Field(default=None, ge=0.0)
    avg_loss: Optional[float] = Field(default=None, ge=0.0)
    sharpe: float = Field(default=0.0)
    period_return: float = Field(default=0.0, gt=-1.0)
    max_drawdown: float = Field(default=0.0, ge=0.0)

    @property
    def has_kelly_inputs(self) -> bool:
        """Return True if a non-zero win rate and a usable payoff ratio are present.

        A win rate of 0 counts as missing, so strategies with no winning days
        fall back to the default fraction instead of the clamp floor.
        """
        return (
            bool(self.win_rate)
            and self.avg_win is not None
            and self.avg_win > 0
            and self.avg_loss is not None
            and self.avg_loss > 0
        )


class DailyPerformanceRecord(BaseModel):
    """One day of realized results for a strategy inside a layer.

    Attributes:
        day: Calendar day (UTC)
        pnl: Realized profit and loss for the day
        trades: Number of trades executed that day
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    day: date
    pnl: float = Field(default=0.0)
    trades: int = Field(default=0, ge=0)
