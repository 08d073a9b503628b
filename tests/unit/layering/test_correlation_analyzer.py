"""Unit tests for signal correlation analysis.

Tests verify:
- Daily series: BUY/SELL mapping, HOLD omitted, same-day averaging
- Pearson correlation over the inner join of dates, never positional
- Low-confidence defaults for short overlap or zero variance
- Pair enumeration, aggregates and the symmetric matrix
- Collaborator reads through the analyze entry point
"""
from datetime import UTC, datetime

import pandas as pd
import pytest

from amplayer.layering.correlation_service import (
    CorrelationAnalyzer,
    build_daily_series,
    pearson_on_common_dates,
)
from amplayer.layering.errors import InsufficientMembersError
from amplayer.models.enums import CorrelationStrength


def _pattern(make_signal, strategy_id, actions, first_day=2):
    """Build one signal per day from a list of actions (None skips the day)."""
    return [
        make_signal(strategy_id, action, day=first_day + offset)
        for offset, action in enumerate(actions)
        if action is not None
    ]


class TestDailySeries:
    """Test reduction of events to daily values."""

    def test_mapping_and_hold_omitted(self, make_signal):
        """BUY is +1, SELL is -1 and HOLD days disappear."""
        events = _pattern(make_signal, "A", ["BUY", "HOLD", "SELL"])
        series = build_daily_series(events)

        assert list(series.values) == [1.0, -1.0]
        assert len(series) == 2

    def test_same_day_signals_averaged(self, make_signal):
        """Three signals on one day average to one value."""
        events = [
            make_signal("A", "BUY", day=2, hour=9),
            make_signal("A", "BUY", day=2, hour=11),
            make_signal("A", "SELL", day=2, hour=15),
        ]
        series = build_daily_series(events)

        assert len(series) == 1
        assert series.iloc[0] == pytest.approx(1 / 3)

    def test_days_keyed_by_utc_date(self, make_signal):
        """A late-evening signal west of UTC lands on the next UTC day."""
        from datetime import timedelta, timezone

        eastern = timezone(timedelta(hours=-5))
        event = make_signal("A", "BUY", timestamp=datetime(2025, 1, 2, 22, 0, tzinfo=eastern))
        series = build_daily_series([event])

        assert series.index[0] == datetime(2025, 1, 3).date()

    def test_empty(self):
        """No directional signals gives an empty series."""
        assert build_daily_series([]).empty


class TestPearsonOnCommonDates:
    """Test date-aligned correlation."""

    def test_inner_join_not_positional(self, make_signal):
        """Only the shared dates are compared."""
        a = build_daily_series(
            _pattern(make_signal, "A", ["BUY", "SELL", "BUY", "BUY", "SELL"])
        )
        # B trades only on days 3 and 4, matching A there
        b = build_daily_series(_pattern(make_signal, "B", ["SELL", "BUY"], first_day=3))

        correlation, overlap = pearson_on_common_dates(a, b)

        assert overlap == 2
        assert correlation == pytest.approx(1.0)

    def test_single_common_date_is_zero(self):
        """Fewer than two shared dates yields 0.0."""
        a = pd.Series([1.0, -1.0], index=["d1", "d2"])
        b = pd.Series([1.0, 1.0], index=["d2", "d3"])

        assert pearson_on_common_dates(a, b) == (0.0, 1)

    def test_zero_variance_is_zero(self):
        """A constant series correlates to 0.0 rather than NaN."""
        a = pd.Series([1.0, 1.0, 1.0], index=["d1", "d2", "d3"])
        b = pd.Series([1.0, -1.0, 1.0], index=["d1", "d2", "d3"])

        correlation, overlap = pearson_on_common_dates(a, b)

        assert correlation == 0.0
        assert overlap == 3

    def test_anticorrelated(self):
        """Opposite series give -1."""
        a = pd.Series([1.0, -1.0, 1.0, -1.0], index=list("abcd"))

        correlation, _ = pearson_on_common_dates(a, -a)

        assert correlation == pytest.approx(-1.0)


class TestAnalyzeHistory:
    """Test the pure analysis entry point."""

    def test_pairs_and_aggregates(self, make_signal):
        """Identical and opposite strategies are all highly correlated."""
        pattern = ["BUY", "SELL", "BUY", "SELL", "BUY"]
        opposite = ["SELL", "BUY", "SELL", "BUY", "SELL"]
        history = {
            "A": _pattern(make_signal, "A", pattern),
            "B": _pattern(make_signal, "B", pattern),
            "C": _pattern(make_signal, "C", opposite),
        }
        report = CorrelationAnalyzer(None, None).analyze_history("L1", ["A", "B", "C"], history)

        assert [(p.strategy1, p.strategy2) for p in report.pairs] == [
            ("A", "B"),
            ("A", "C"),
            ("B", "C"),
        ]
        assert report.get_correlation("A", "B") == pytest.approx(1.0)
        assert report.get_correlation("C", "A") == pytest.approx(-1.0)
        assert all(p.strength is CorrelationStrength.HIGH for p in report.pairs)
        assert report.avg_correlation == pytest.approx(1.0)
        assert report.max_correlation == pytest.approx(1.0)
        assert report.diversification_score == 0

    def test_no_history_is_fully_diversified(self):
        """Missing history gives low-confidence zero correlations."""
        report = CorrelationAnalyzer(None, None).analyze_history("L1", ["A", "B"], {})

        assert report.pairs[0].correlation == 0.0
        assert report.pairs[0].low_confidence
        assert report.diversification_score == 100

    def test_matrix_symmetric_with_unit_diagonal(self, make_signal):
        """matrix() mirrors each pair and puts 1.0 on the diagonal."""
        history = {
            "A": _pattern(make_signal, "A", ["BUY", "SELL", "BUY", "BUY"]),
            "B": _pattern(make_signal, "B", ["BUY", "BUY", "SELL", "BUY"]),
        }
        matrix = CorrelationAnalyzer(None, None).analyze_history(
            "L1", ["A", "B"], history
        ).matrix()

        assert matrix["A"]["A"] == 1.0
        assert matrix["A"]["B"] == matrix["B"]["A"]
        assert -1.0 <= matrix["A"]["B"] <= 1.0

    def test_requires_two_strategies(self):
        """A single strategy cannot be correlated."""
        with pytest.raises(InsufficientMembersError):
            CorrelationAnalyzer(None, None).analyze_history("L1", ["A"], {})


class TestAnalyze:
    """Test the collaborator-backed entry point."""

    def test_reads_history_inside_window(self, abc_store, make_signal):
        """Only signals inside the lookback window are correlated."""
        pattern = ["BUY", "SELL", "BUY", "SELL"]
        abc_store.record_signals(
            "L1",
            _pattern(make_signal, "A", pattern)
            + _pattern(make_signal, "B", pattern)
            + _pattern(make_signal, "C", ["SELL", "BUY", "SELL", "BUY"]),
        )
        analyzer = CorrelationAnalyzer(abc_store, abc_store)

        report = analyzer.analyze("L1", lookback_days=30, as_of=datetime(2025, 1, 10, tzinfo=UTC))
        assert report.get_correlation("A", "B") == pytest.approx(1.0)

        later = analyzer.analyze("L1", lookback_days=5, as_of=datetime(2025, 3, 1, tzinfo=UTC))
        assert later.diversification_score == 100

    def test_disabled_members_excluded(self, abc_store):
        """Only enabled members are analyzed."""
        abc_store.remove_member("L1", "C")

        report = CorrelationAnalyzer(abc_store, abc_store).analyze("L1")

        assert report.strategy_ids == ["A", "B"]
        assert len(report.pairs) == 1

    def test_one_enabled_member_raises(self, abc_store):
        """Fewer than two enabled members is an input error."""
        abc_store.remove_member("L1", "B")
        abc_store.remove_member("L1", "C")

        with pytest.raises(InsufficientMembersError):
            CorrelationAnalyzer(abc_store, abc_store).analyze("L1")
