"""Layer capital allocation engine.

This module splits a layer's capital pool across its enabled strategies.
Policy selection is a dispatch table over four pure functions sharing one
contract: given the enabled members, the available performance snapshots
and the tuning parameters, return one ``(strategy_id, share, detail)`` tuple
per member. The engine normalizes shares into fractions, checks they sum to
one, converts them to dollars and attaches an audit rationale naming the
policy and its key input.

Missing performance for a strategy is never fatal: the dynamic policy falls
back to its score floor and the Kelly policy to its default fraction.
"""
import logging
import math
from collections.abc import Callable, Mapping
from typing import Optional

from amplayer.config.parameters import DEFAULT_PARAMETERS, LayeringParameters
from amplayer.layering.errors import AllocationInvariantError, InputError
from amplayer.models.allocation import AllocationResult
from amplayer.models.enums import CapitalPolicy
from amplayer.models.layer import Layer, LayerMember
from amplayer.models.performance import PerformanceSnapshot

logger = logging.getLogger(__name__)

PolicyShare = tuple[str, float, str]
PolicyFn = Callable[
    [list[LayerMember], Mapping[str, PerformanceSnapshot], LayeringParameters],
    list[PolicyShare],
]


def equal_shares(
    members: list[LayerMember],
    performance: Mapping[str, PerformanceSnapshot],  # pylint: disable=unused-argument
    params: LayeringParameters,  # pylint: disable=unused-argument
) -> list[PolicyShare]:
    """Give every enabled member the same share."""
    detail = f"equal split across {len(members)} enabled strategies"
    return [(member.strategy_id, 1.0, detail) for member in members]


def weighted_shares(
    members: list[LayerMember],
    performance: Mapping[str, PerformanceSnapshot],
    params: LayeringParameters,
) -> list[PolicyShare]:
    """Share capital by configured static weight.

    Weights need not sum to one; they are normalized over the enabled set.
    If every enabled weight is zero the split falls back to equal.
    """
    weight_sum = sum(member.weight for member in members)
    if weight_sum <= 0:
        logger.warning(
            "All %d enabled weights are zero; applying equal-weight fallback",
            len(members),
        )
        return [
            (strategy_id, share, f"all weights zero, {detail}")
            for strategy_id, share, detail in equal_shares(members, performance, params)
        ]

    return [
        (
            member.strategy_id,
            member.weight,
            f"configured weight {member.weight:.3f} of {weight_sum:.3f}",
        )
        for member in members
    ]


def dynamic_shares(
    members: list[LayerMember],
    performance: Mapping[str, PerformanceSnapshot],
    params: LayeringParameters,
) -> list[PolicyShare]:
    """Share capital by recent performance.

    score = max(floor, sharpe * (1 + period_return)). The floor keeps every
    enabled strategy funded after losses or without data.
    """
    floor = params.dynamic_score_floor
    shares = []
    for member in members:
        perf = performance.get(member.strategy_id)
        if perf is None:
            logger.debug(
                "No performance for %s; using dynamic floor %.3f",
                member.strategy_id,
                floor,
            )
            shares.append(
                (member.strategy_id, floor, f"no performance data, floor score {floor:.3f}")
            )
            continue

        score = max(floor, perf.sharpe * (1.0 + perf.period_return))
        shares.append(
            (
                member.strategy_id,
                score,
                f"score {score:.3f} from sharpe {perf.sharpe:.2f} "
                f"and return {perf.period_return:.2%}",
            )
        )
    return shares


def kelly_fraction(
    perf: Optional[PerformanceSnapshot], params: LayeringParameters
) -> tuple[float, Optional[float]]:
    """Compute the clamped fractional Kelly size for one strategy.

    f* = (b*p - q) / b with b = avg_win / avg_loss, p = win_rate, q = 1 - p,
    scaled by kelly_multiplier and clamped to [kelly_min, kelly_max].

    Args:
        perf: Performance snapshot, or None if unavailable
        params: Tuning parameters

    Returns:
        (clamped fraction, raw full-Kelly value or None when defaulted)
    """
    if perf is None or not perf.has_kelly_inputs:
        return params.kelly_default, None

    payoff = perf.avg_win / perf.avg_loss
    p = perf.win_rate
    q = 1.0 - p
    raw = (payoff * p - q) / payoff
    clamped = max(params.kelly_min, min(params.kelly_max, raw * params.kelly_multiplier))
    return clamped, raw


def kelly_shares(
    members: list[LayerMember],
    performance: Mapping[str, PerformanceSnapshot],
    params: LayeringParameters,
) -> list[PolicyShare]:
    """Share capital by clamped fractional Kelly sizing."""
    shares = []
    for member in members:
        fraction, raw = kelly_fraction(performance.get(member.strategy_id), params)
        if raw is None:
            detail = f"insufficient win/loss data, default Kelly {fraction:.3f}"
        else:
            detail = (
                f"Kelly {fraction:.3f} ({params.kelly_multiplier:g}x of raw {raw:.3f})"
            )
        shares.append((member.strategy_id, fraction, detail))
    return shares


ALLOCATION_POLICIES: dict[CapitalPolicy, PolicyFn] = {
    CapitalPolicy.EQUAL: equal_shares,
    CapitalPolicy.WEIGHTED: weighted_shares,
    CapitalPolicy.DYNAMIC: dynamic_shares,
    CapitalPolicy.KELLY: kelly_shares,
}


class CapitalAllocator:
    """Computes per-strategy capital allocation for a layer.

    Stateless between calls; one instance may serve many layers
    concurrently.

    Attributes:
        params: Tuning parameters (floors, clamps, rounding)
    """

    def __init__(self, params: LayeringParameters = DEFAULT_PARAMETERS):
        """Initialize allocation engine.

        Args:
            params: Tuning parameters (defaults to DEFAULT_PARAMETERS)
        """
        self.params = params

    def allocate(
        self,
        layer: Layer,
        total_capital: float,
        performance: Optional[Mapping[str, PerformanceSnapshot]] = None,
        policy: Optional[CapitalPolicy] = None,
    ) -> list[AllocationResult]:
        """Split total_capital across the layer's enabled members.

        Args:
            layer: Layer whose enabled members share the capital
            total_capital: Capital to split (positive, finite)
            performance: Snapshots keyed by strategy id (missing entries
                fall back to policy defaults)
            policy: Override for layer.capital_policy

        Returns:
            One AllocationResult per enabled member, in configuration order;
            empty if the layer has no enabled members

        Raises:
            InputError: If total_capital is not a positive finite number
            AllocationInvariantError: If normalized fractions do not sum to 1
        """
        if not isinstance(total_capital, (int, float)) or not math.isfinite(total_capital):
            raise InputError(
                "Total capital must be a finite number",
                context={"layer_id": layer.id, "total_capital": total_capital},
            )
        if total_capital <= 0:
            raise InputError(
                "Total capital must be positive",
                context={"layer_id": layer.id, "total_capital": total_capital},
            )

        members = layer.enabled_members
        chosen = CapitalPolicy(policy or layer.capital_policy)
        if not members:
            logger.warning("Layer %s has no enabled members; nothing allocated", layer.id)
            return []

        shares = ALLOCATION_POLICIES[chosen](members, performance or {}, self.params)
        share_total = sum(share for _, share, _ in shares)
        if share_total <= 0:
            raise AllocationInvariantError(
                "Policy produced no positive shares",
                context={"layer_id": layer.id, "policy": chosen.value},
            )

        fractions = {strategy_id: share / share_total for strategy_id, share, _ in shares}
        fraction_sum = sum(fractions.values())
        if abs(fraction_sum - 1.0) > self.params.allocation_tolerance:
            raise AllocationInvariantError(
                "Allocation fractions do not sum to 1",
                context={"layer_id": layer.id, "sum": fraction_sum},
            )

        dollars = {
            strategy_id: total_capital * share / share_total
            for strategy_id, share, _ in shares
        }
        if self.params.rounding_dp is not None:
            dollars = self._apply_largest_remainder_rounding(dollars, total_capital)

        results = [
            AllocationResult(
                strategy_id=strategy_id,
                allocated=dollars[strategy_id],
                fraction=fractions[strategy_id],
                rationale=f"{chosen.value}: {fractions[strategy_id]:.1%} ({detail})",
            )
            for strategy_id, _, detail in shares
        ]

        logger.info(
            "Allocated %.2f across %d strategies in layer %s (policy=%s)",
            total_capital,
            len(results),
            layer.id,
            chosen.value,
        )
        return results

    def _apply_largest_remainder_rounding(
        self, raw_allocations: dict[str, float], total_capital: float
    ) -> dict[str, float]:
        """Round allocations while keeping their sum equal to total capital.

        After rounding every allocation, the residual rounding error is
        assigned to the strategy with the largest fractional remainder.

        Args:
            raw_allocations: Raw float allocations per strategy
            total_capital: Total capital that allocations must sum to

        Returns:
            Rounded allocations summing to total_capital
        """
        dp = self.params.rounding_dp
        rounded = {}
        remainders = {}

        for strategy_id, value in raw_allocations.items():
            rounded_value = round(value, dp)
            rounded[strategy_id] = rounded_value
            remainders[strategy_id] = value - rounded_value

        error = round(total_capital - sum(rounded.values()), dp)

        if abs(error) > 0:
            max_strategy = max(remainders, key=lambda s: abs(remainders[s]))
            rounded[max_strategy] = round(rounded[max_strategy] + error, dp)
            logger.debug(
                "Applied largest remainder correction: %s adjusted by %.4f",
                max_strategy,
                error,
            )

        return rounded


def position_size(allocated: float, price: float) -> int:
    """Return the whole number of units affordable with allocated capital.

    Always rounds down so a position never exceeds its allocation.

    Args:
        allocated: Dollars available to the strategy
        price: Current unit price (positive)

    Returns:
        floor(allocated / price), never negative

    Raises:
        InputError: If price is not positive or either input is not finite

    Examples:
        >>> position_size(1000.0, 333.0)
        3
    """
    if not math.isfinite(price) or price <= 0:
        raise InputError("Price must be a positive finite number", context={"price": price})
    if not math.isfinite(allocated) or allocated < 0:
        raise InputError(
            "Allocated capital must be a non-negative finite number",
            context={"allocated": allocated},
        )
    return math.floor(allocated / price)
