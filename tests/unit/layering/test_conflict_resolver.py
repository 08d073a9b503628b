"""Unit tests for conflict resolution.

Tests verify:
- Priority, voting and net-signal policies
- HOLD for empty input, voting ties and zero net score
- Signals from unknown or disabled members are ignored
- Order independence and one vote per strategy
- Grouping of mixed batches by symbol and UTC day
"""
import itertools

import pytest

from amplayer.layering.conflict_resolver import ConflictResolver
from amplayer.layering.errors import InputError
from amplayer.models.enums import ConflictPolicy, SignalAction


@pytest.fixture()
def resolver():
    return ConflictResolver()


class TestPriorityPolicy:
    """Test highest-priority-wins resolution."""

    def test_highest_priority_wins(self, abc_layer, resolver, make_signal):
        """A (80) BUY beats B (50) SELL and C (20) SELL."""
        signals = [
            make_signal("A", "BUY"),
            make_signal("B", "SELL"),
            make_signal("C", "SELL"),
        ]

        resolution = resolver.resolve_detailed(abc_layer, signals)

        assert resolution.action is SignalAction.BUY
        assert resolution.conflicts is True
        assert resolution.contributors == ("A", "B", "C")
        assert "A" in resolution.reasoning

    def test_equal_priority_smallest_id_wins(self, abc_layer, resolver, make_signal):
        """Ties on priority go to the lexicographically smallest id."""
        abc_layer.members[1].priority = 80

        action = resolver.resolve(
            abc_layer, [make_signal("B", "SELL"), make_signal("A", "BUY")]
        )

        assert action is SignalAction.BUY

    def test_disabled_member_ignored(self, abc_layer, resolver, make_signal):
        """A disabled high-priority member does not decide."""
        abc_layer.members[0].enabled = False

        action = resolver.resolve(
            abc_layer, [make_signal("A", "BUY"), make_signal("B", "SELL")]
        )

        assert action is SignalAction.SELL

    def test_unknown_strategy_ignored(self, abc_layer, resolver, make_signal):
        """Signals from strategies outside the layer are dropped."""
        action = resolver.resolve(abc_layer, [make_signal("Z", "BUY")])

        assert action is SignalAction.HOLD


class TestVotingPolicy:
    """Test plurality voting."""

    @pytest.fixture()
    def voting_layer(self, abc_layer):
        abc_layer.conflict_policy = ConflictPolicy.VOTING
        return abc_layer

    def test_majority_wins(self, voting_layer, resolver, make_signal):
        """Two SELL votes beat one BUY."""
        signals = [
            make_signal("A", "BUY"),
            make_signal("B", "SELL"),
            make_signal("C", "SELL"),
        ]

        assert resolver.resolve(voting_layer, signals) is SignalAction.SELL

    def test_tie_is_hold(self, voting_layer, resolver, make_signal):
        """One BUY, one SELL and one HOLD tie for first place."""
        signals = [
            make_signal("A", "BUY"),
            make_signal("B", "SELL"),
            make_signal("C", "HOLD"),
        ]

        resolution = resolver.resolve_detailed(voting_layer, signals)

        assert resolution.action is SignalAction.HOLD
        assert "tie" in resolution.reasoning

    def test_hold_can_win(self, voting_layer, resolver, make_signal):
        """HOLD is a vote like any other."""
        signals = [
            make_signal("A", "BUY"),
            make_signal("B", "HOLD"),
            make_signal("C", "HOLD"),
        ]

        assert resolver.resolve(voting_layer, signals) is SignalAction.HOLD


class TestNetSignalPolicy:
    """Test summed-direction resolution."""

    @pytest.fixture()
    def net_layer(self, abc_layer):
        abc_layer.conflict_policy = ConflictPolicy.NET_SIGNAL
        return abc_layer

    def test_unweighted_sum(self, net_layer, resolver, make_signal):
        """Two SELL and one BUY net to SELL."""
        signals = [
            make_signal("A", "BUY"),
            make_signal("B", "SELL"),
            make_signal("C", "SELL"),
        ]

        assert resolver.resolve(net_layer, signals) is SignalAction.SELL

    def test_capital_weighted_sum(self, net_layer, resolver, make_signal):
        """A's 60% of capital outweighs B and C together."""
        signals = [
            make_signal("A", "BUY"),
            make_signal("B", "SELL"),
            make_signal("C", "SELL"),
        ]
        fractions = {"A": 0.6, "B": 0.25, "C": 0.15}

        assert resolver.resolve(net_layer, signals, fractions) is SignalAction.BUY

    def test_zero_sum_is_hold(self, net_layer, resolver, make_signal):
        """Opposite equal votes cancel out."""
        signals = [make_signal("A", "BUY"), make_signal("B", "SELL")]

        assert resolver.resolve(net_layer, signals) is SignalAction.HOLD


class TestResolutionProperties:
    """Test properties shared by every policy."""

    @pytest.mark.parametrize("policy", list(ConflictPolicy))
    def test_empty_input_is_hold(self, abc_layer, resolver, policy):
        """No signals resolves to HOLD."""
        resolution = resolver.resolve_detailed(abc_layer, [], policy=policy)

        assert resolution.action is SignalAction.HOLD
        assert resolution.symbol is None

    @pytest.mark.parametrize("policy", list(ConflictPolicy))
    def test_order_independent(self, abc_layer, resolver, make_signal, policy):
        """Every permutation of the batch resolves identically."""
        abc_layer.conflict_policy = policy
        signals = [
            make_signal("A", "SELL", hour=9),
            make_signal("B", "BUY", hour=10),
            make_signal("C", "BUY", hour=11),
            make_signal("A", "BUY", hour=8),
        ]

        outcomes = {
            resolver.resolve(abc_layer, list(order))
            for order in itertools.permutations(signals)
        }

        assert len(outcomes) == 1

    def test_latest_signal_per_strategy_counts(self, abc_layer, resolver, make_signal):
        """A strategy votes with its latest signal in the batch."""
        abc_layer.conflict_policy = ConflictPolicy.VOTING
        signals = [
            make_signal("A", "BUY", hour=9),
            make_signal("A", "SELL", hour=15),
            make_signal("B", "SELL", hour=10),
        ]

        resolution = resolver.resolve_detailed(abc_layer, signals)

        assert resolution.action is SignalAction.SELL
        assert resolution.conflicts is False

    def test_mixed_symbols_rejected(self, abc_layer, resolver, make_signal):
        """One batch must target one symbol."""
        signals = [make_signal("A", "BUY"), make_signal("B", "SELL", symbol="MSFT")]

        with pytest.raises(InputError):
            resolver.resolve(abc_layer, signals)

    def test_mixed_days_rejected(self, abc_layer, resolver, make_signal):
        """One batch must fall within one UTC day."""
        signals = [make_signal("A", "BUY", day=2), make_signal("B", "SELL", day=3)]

        with pytest.raises(InputError):
            resolver.resolve(abc_layer, signals)


class TestCoordinate:
    """Test resolution of mixed batches."""

    def test_groups_by_symbol_and_day(self, abc_layer, resolver, make_signal):
        """Each (day, symbol) group is resolved and HOLD outcomes dropped."""
        signals = [
            make_signal("B", "SELL", day=3, symbol="MSFT"),
            make_signal("A", "BUY", day=2),
            make_signal("C", "SELL", day=2),
            make_signal("B", "HOLD", day=2, symbol="TSLA"),
            make_signal("C", "BUY", day=3, symbol="AAPL"),
        ]

        resolved = resolver.coordinate(abc_layer, signals)

        assert [(r.bucket.day, r.symbol, r.action) for r in resolved] == [
            (2, "AAPL", SignalAction.BUY),
            (3, "AAPL", SignalAction.BUY),
            (3, "MSFT", SignalAction.SELL),
        ]
        assert resolved[0].conflicts is True

    def test_empty_batch(self, abc_layer, resolver):
        """Nothing in, nothing out."""
        assert resolver.coordinate(abc_layer, []) == []
