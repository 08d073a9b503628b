"""Unit tests for capital allocation policies.

Tests verify:
- Equal and weighted splits, including the all-zero-weights fallback
- Dynamic scores with the performance floor
- Clamped fractional Kelly sizing and its defaults
- Only enabled members participate and fractions sum to one
- Invalid capital is rejected before computation
"""
import math

import pytest

from amplayer.config.parameters import LayeringParameters
from amplayer.layering.allocation_engine import (
    CapitalAllocator,
    kelly_fraction,
    position_size,
)
from amplayer.layering.errors import InputError
from amplayer.models.enums import CapitalPolicy
from amplayer.models.layer import Layer, LayerMember
from amplayer.models.performance import PerformanceSnapshot


def _by_id(results):
    return {result.strategy_id: result for result in results}


class TestEqualAndWeighted:
    """Test the static allocation policies."""

    def test_weighted_split_follows_configured_weights(self, abc_layer):
        """Weighted policy gives 5000/3000/2000 of 10000."""
        results = _by_id(CapitalAllocator().allocate(abc_layer, 10_000.0))

        assert results["A"].allocated == pytest.approx(5000.0)
        assert results["B"].allocated == pytest.approx(3000.0)
        assert results["C"].allocated == pytest.approx(2000.0)

    def test_equal_split(self, abc_layer):
        """Equal policy gives each enabled strategy a third."""
        results = CapitalAllocator().allocate(
            abc_layer, 10_000.0, policy=CapitalPolicy.EQUAL
        )

        for result in results:
            assert result.allocated == pytest.approx(3333.33, abs=0.01)
            assert result.fraction == pytest.approx(1 / 3)

    def test_weights_normalized_when_not_summing_to_one(self):
        """Weights 0.2 and 0.2 split capital evenly."""
        layer = Layer(
            id="L",
            members=[
                LayerMember(strategy_id="X", weight=0.2),
                LayerMember(strategy_id="Y", weight=0.2),
            ],
        )
        results = _by_id(CapitalAllocator().allocate(layer, 1000.0))

        assert results["X"].allocated == pytest.approx(500.0)
        assert results["Y"].allocated == pytest.approx(500.0)

    def test_all_zero_weights_fall_back_to_equal(self, caplog):
        """All-zero weights produce an equal split and a warning."""
        layer = Layer(
            id="L",
            members=[
                LayerMember(strategy_id="X", weight=0.0),
                LayerMember(strategy_id="Y", weight=0.0),
            ],
        )
        with caplog.at_level("WARNING"):
            results = CapitalAllocator().allocate(layer, 1000.0)

        assert [r.allocated for r in results] == pytest.approx([500.0, 500.0])
        assert "equal-weight fallback" in caplog.text
        assert "all weights zero" in results[0].rationale

    def test_disabled_members_receive_nothing(self, abc_layer):
        """Disabled members are absent; weights renormalize over the rest."""
        abc_layer.members[0].enabled = False
        results = _by_id(CapitalAllocator().allocate(abc_layer, 10_000.0))

        assert set(results) == {"B", "C"}
        assert results["B"].allocated == pytest.approx(6000.0)
        assert results["C"].allocated == pytest.approx(4000.0)

    def test_no_enabled_members_returns_empty(self, abc_layer):
        """A layer with nothing enabled allocates nothing."""
        for member in abc_layer.members:
            member.enabled = False

        assert CapitalAllocator().allocate(abc_layer, 10_000.0) == []

    def test_rationale_names_policy(self, abc_layer):
        """Every result explains which policy produced it."""
        for policy in CapitalPolicy:
            for result in CapitalAllocator().allocate(abc_layer, 1000.0, policy=policy):
                assert result.rationale.startswith(policy.value)


class TestDynamicPolicy:
    """Test performance-driven allocation."""

    def test_scores_with_floor(self, abc_layer):
        """Negative or missing performance falls back to the 0.1 floor."""
        performance = {
            "A": PerformanceSnapshot(sharpe=2.0, period_return=0.1),
            "B": PerformanceSnapshot(sharpe=-1.0, period_return=-0.2),
        }
        results = _by_id(
            CapitalAllocator().allocate(
                abc_layer, 2400.0, performance, policy=CapitalPolicy.DYNAMIC
            )
        )

        # scores: A = 2.2, B = floor 0.1, C = floor 0.1 (no data)
        assert results["A"].fraction == pytest.approx(2.2 / 2.4)
        assert results["B"].allocated == pytest.approx(100.0)
        assert results["C"].allocated == pytest.approx(100.0)
        assert "no performance data" in results["C"].rationale

    def test_all_missing_performance_is_equal(self, abc_layer):
        """With no data every member sits on the floor."""
        results = CapitalAllocator().allocate(
            abc_layer, 900.0, policy=CapitalPolicy.DYNAMIC
        )

        assert [r.allocated for r in results] == pytest.approx([300.0, 300.0, 300.0])

    def test_custom_floor(self, abc_layer):
        """The floor comes from parameters."""
        allocator = CapitalAllocator(LayeringParameters(dynamic_score_floor=1.0))
        performance = {"A": PerformanceSnapshot(sharpe=3.0, period_return=0.0)}
        results = _by_id(
            allocator.allocate(abc_layer, 500.0, performance, policy=CapitalPolicy.DYNAMIC)
        )

        assert results["A"].allocated == pytest.approx(300.0)
        assert results["B"].allocated == pytest.approx(100.0)


class TestKellyPolicy:
    """Test clamped fractional Kelly sizing."""

    def test_kelly_fraction_half_kelly(self, default_parameters):
        """b=2, p=0.6 gives raw 0.4 and half-Kelly 0.2."""
        perf = PerformanceSnapshot(win_rate=0.6, avg_win=2.0, avg_loss=1.0)
        clamped, raw = kelly_fraction(perf, default_parameters)

        assert raw == pytest.approx(0.4)
        assert clamped == pytest.approx(0.2)

    def test_kelly_fraction_clamped_high(self, default_parameters):
        """A large edge is clamped to 0.25."""
        perf = PerformanceSnapshot(win_rate=0.9, avg_win=3.0, avg_loss=1.0)
        clamped, _ = kelly_fraction(perf, default_parameters)

        assert clamped == pytest.approx(0.25)

    def test_kelly_fraction_clamped_low(self, default_parameters):
        """A negative edge is clamped to 0.01."""
        perf = PerformanceSnapshot(win_rate=0.2, avg_win=1.0, avg_loss=1.0)
        clamped, raw = kelly_fraction(perf, default_parameters)

        assert raw < 0
        assert clamped == pytest.approx(0.01)

    @pytest.mark.parametrize(
        "perf",
        [
            None,
            PerformanceSnapshot(),
            PerformanceSnapshot(win_rate=0.6, avg_win=2.0),
            PerformanceSnapshot(win_rate=0.6, avg_win=2.0, avg_loss=0.0),
            PerformanceSnapshot(avg_win=2.0, avg_loss=1.0),
            PerformanceSnapshot(win_rate=0.0, avg_win=2.0, avg_loss=1.0),
        ],
    )
    def test_missing_inputs_use_default(self, perf, default_parameters):
        """Missing or zero win rate, missing average win or a zero average loss default to 0.05."""
        clamped, raw = kelly_fraction(perf, default_parameters)

        assert clamped == pytest.approx(0.05)
        assert raw is None

    def test_kelly_allocation_normalized(self, abc_layer):
        """Fractions 0.2, 0.01, 0.05 are normalized over their sum."""
        performance = {
            "A": PerformanceSnapshot(win_rate=0.6, avg_win=2.0, avg_loss=1.0),
            "B": PerformanceSnapshot(win_rate=0.5, avg_win=1.0, avg_loss=1.0),
        }
        results = _by_id(
            CapitalAllocator().allocate(
                abc_layer, 26_000.0, performance, policy=CapitalPolicy.KELLY
            )
        )

        assert results["A"].allocated == pytest.approx(20_000.0)
        assert results["B"].allocated == pytest.approx(1_000.0)
        assert results["C"].allocated == pytest.approx(5_000.0)
        assert sum(r.fraction for r in results.values()) == pytest.approx(1.0)


class TestInputValidation:
    """Test rejection of malformed allocation input."""

    @pytest.mark.parametrize("capital", [0.0, -100.0, math.nan, math.inf])
    def test_bad_capital_rejected(self, abc_layer, capital):
        """Non-positive or non-finite capital raises InputError."""
        with pytest.raises(InputError):
            CapitalAllocator().allocate(abc_layer, capital)

    def test_position_size_floors(self):
        """Units are rounded down."""
        assert position_size(1000.0, 333.0) == 3
        assert position_size(999.99, 1000.0) == 0

    @pytest.mark.parametrize("price", [0.0, -5.0, math.nan])
    def test_position_size_rejects_bad_price(self, price):
        """Price must be positive and finite."""
        with pytest.raises(InputError):
            position_size(1000.0, price)
