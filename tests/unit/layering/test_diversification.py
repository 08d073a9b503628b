"""Unit tests for correlation strength buckets and the diversification score."""
import pytest

from amplayer.config.parameters import LayeringParameters
from amplayer.layering.diversification import (
    aggregate_correlations,
    calculate_diversification_score,
    classify_correlation,
)
from amplayer.models.enums import CorrelationStrength


class TestClassifyCorrelation:
    """Test |r| bucketing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0.7, CorrelationStrength.HIGH),
            (-0.95, CorrelationStrength.HIGH),
            (0.69, CorrelationStrength.MEDIUM),
            (-0.4, CorrelationStrength.MEDIUM),
            (0.39, CorrelationStrength.LOW),
            (0.0, CorrelationStrength.LOW),
        ],
    )
    def test_default_thresholds(self, value, expected):
        """0.7 and 0.4 are inclusive lower bounds on |r|."""
        assert classify_correlation(value) is expected

    def test_custom_thresholds(self):
        """Thresholds come from parameters."""
        params = LayeringParameters(high_correlation=0.9, medium_correlation=0.5)

        assert classify_correlation(0.8, params) is CorrelationStrength.MEDIUM


class TestDiversificationScore:
    """Test aggregation and the 0-100 score."""

    def test_aggregate_uses_absolute_values(self):
        """Negative correlations count by magnitude."""
        avg, peak = aggregate_correlations([0.2, -0.6, 0.1])

        assert avg == pytest.approx(0.3)
        assert peak == pytest.approx(0.6)

    def test_aggregate_empty(self):
        """No pairs aggregate to zero."""
        assert aggregate_correlations([]) == (0.0, 0.0)

    @pytest.mark.parametrize(
        ("avg", "peak", "expected"),
        [
            (0.0, 0.0, 100),
            (1.0, 1.0, 0),
            (0.25, 0.5, 63),
            (0.3, 0.6, 55),
            (0.5, 0.5, 50),
        ],
    )
    def test_score_formula(self, avg, peak, expected):
        """score = round(50(1 - avg) + 50(1 - max)), halves rounding up."""
        assert calculate_diversification_score(avg, peak) == expected

    def test_score_bounded(self):
        """Float noise never leaves [0, 100]."""
        assert calculate_diversification_score(1.0000000001, 1.0) == 0
        assert calculate_diversification_score(-1e-12, 0.0) == 100
