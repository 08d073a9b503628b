"""
Trailing performance summaries for layer members.

This module reduces a strategy's daily realized results inside a layer into
the PerformanceSnapshot consumed by the dynamic and Kelly allocation
policies. Days without trades are still part of the return series (their
PnL is usually zero) but do not count toward the win rate.

An empty record set yields a neutral snapshot with no win/loss data so the
allocation policies apply their documented floors and defaults.
"""

import logging
from collections.abc import Sequence

import numpy as np

from amplayer.layering.errors import InputError
from amplayer.models.performance import DailyPerformanceRecord, PerformanceSnapshot


logger = logging.getLogger(__name__)

TRADING_DAYS_PER_YEAR = 252


def summarize_performance(
    records: Sequence[DailyPerformanceRecord], capital_base: float
) -> PerformanceSnapshot:
    """
    Summarize daily records into a trailing performance snapshot.

    Args:
        records: Daily records for one strategy, in any order.
        capital_base: Capital the strategy traded with; PnL is expressed
            relative to it for period return and drawdown.

    Returns:
        PerformanceSnapshot with win rate, average win/loss magnitude,
        annualized Sharpe (sample std), period return and max drawdown.

    Raises:
        InputError: If capital_base is not positive or cumulative losses
            exceed it.

    Examples:
        >>> from datetime import date
        >>> snapshot = summarize_performance(
        ...     [DailyPerformanceRecord(day=date(2025, 1, 2), pnl=100.0, trades=1)],
        ...     capital_base=10_000.0,
        ... )
        >>> snapshot.win_rate, snapshot.period_return
        (1.0, 0.01)
    """
    if not np.isfinite(capital_base) or capital_base <= 0:
        raise InputError(
            "Capital base must be a positive finite number",
            context={"capital_base": capital_base},
        )

    if not records:
        logger.debug("No performance records; returning neutral snapshot")
        return PerformanceSnapshot()

    ordered = sorted(records, key=lambda record: record.day)
    pnl = np.array([record.pnl for record in ordered], dtype=np.float64)

    traded = [record for record in ordered if record.trades > 0]
    wins = np.array([r.pnl for r in traded if r.pnl > 0], dtype=np.float64)
    losses = np.array([-r.pnl for r in traded if r.pnl < 0], dtype=np.float64)

    win_rate = len(wins) / len(traded) if traded else None
    avg_win = float(np.mean(wins)) if len(wins) > 0 else None
    avg_loss = float(np.mean(losses)) if len(losses) > 0 else None

    # Sharpe over daily PnL, sample standard deviation, annualized
    sharpe = 0.0
    if len(pnl) >= 2:
        std = float(np.std(pnl, ddof=1))
        if std > 0:
            sharpe = float(np.mean(pnl) / std * np.sqrt(TRADING_DAYS_PER_YEAR))

    total_pnl = float(np.sum(pnl))
    if total_pnl <= -capital_base:
        raise InputError(
            "Cumulative losses exceed the capital base",
            context={"total_pnl": total_pnl, "capital_base": capital_base},
        )

    # Maximum drawdown as a fraction of running peak equity
    equity = capital_base + np.cumsum(pnl)
    running_max = np.maximum.accumulate(np.concatenate(([capital_base], equity)))[1:]
    drawdown = (running_max - equity) / running_max
    max_drawdown = float(np.max(drawdown)) if len(drawdown) > 0 else 0.0

    logger.debug(
        "Summarized %d days: pnl=%.2f win_rate=%s sharpe=%.3f max_dd=%.4f",
        len(ordered),
        total_pnl,
        win_rate,
        sharpe,
        max_drawdown,
    )

    return PerformanceSnapshot(
        win_rate=win_rate,
        avg_win=avg_win,
        avg_loss=avg_loss,
        sharpe=sharpe,
        period_return=total_pnl / capital_base,
        max_drawdown=max(0.0, max_drawdown),
    )
