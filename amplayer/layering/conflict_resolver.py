"""Conflict resolution for simultaneous strategy signals.

When several enabled strategies in a layer signal on the same instrument in
the same simultaneity bucket (UTC calendar day, see ``signal_bucket``), the
resolver picks exactly one action. Resolution is total (an empty or fully
filtered batch resolves to HOLD) and deterministic: the result depends only
on the set of signals, never on their order.

Each strategy casts one vote per batch: the net direction of its signals at
its latest timestamp in the batch.
"""
import logging
from collections import Counter, defaultdict
from collections.abc import Callable, Iterable, Mapping
from typing import Optional

from amplayer.layering.errors import InputError
from amplayer.models.conflict import ConflictResolution
from amplayer.models.enums import ConflictPolicy, SignalAction
from amplayer.models.layer import Layer
from amplayer.models.signal import SignalEvent

logger = logging.getLogger(__name__)

# Net scores within this distance of zero resolve to HOLD.
NET_ZERO_TOLERANCE = 1e-12

ResolverFn = Callable[
    [dict[str, SignalAction], Layer, Optional[Mapping[str, float]]],
    tuple[SignalAction, str],
]


def resolve_by_priority(
    votes: dict[str, SignalAction],
    layer: Layer,
    capital_fractions: Optional[Mapping[str, float]],  # pylint: disable=unused-argument
) -> tuple[SignalAction, str]:
    """Highest priority wins; equal priorities go to the smallest strategy id."""
    winner = min(votes, key=lambda sid: (-layer.get_member(sid).priority, sid))
    priority = layer.get_member(winner).priority
    return votes[winner], f"Priority-based: {winner} (priority {priority}) decides"


def resolve_by_voting(
    votes: dict[str, SignalAction],
    layer: Layer,  # pylint: disable=unused-argument
    capital_fractions: Optional[Mapping[str, float]],  # pylint: disable=unused-argument
) -> tuple[SignalAction, str]:
    """Plurality of member actions; any tie for first place resolves to HOLD."""
    counts = Counter(votes.values())
    top = max(counts.values())
    leaders = sorted(action.value for action, count in counts.items() if count == top)
    tally = ", ".join(
        f"{action.value}={counts.get(action, 0)}" for action in SignalAction
    )
    if len(leaders) > 1:
        return SignalAction.HOLD, f"Voting: tie between {'/'.join(leaders)} ({tally}), holding"
    return SignalAction(leaders[0]), f"Voting: {leaders[0]} wins ({tally})"


def resolve_by_net_signal(
    votes: dict[str, SignalAction],
    layer: Layer,  # pylint: disable=unused-argument
    capital_fractions: Optional[Mapping[str, float]],
) -> tuple[SignalAction, str]:
    """Sign of the summed +1/-1/0 votes, optionally weighted by capital fraction."""
    if capital_fractions is None:
        score = float(sum(action.direction for action in votes.values()))
        basis = "unweighted"
    else:
        score = sum(
            action.direction * capital_fractions.get(sid, 0.0)
            for sid, action in votes.items()
        )
        basis = "capital-weighted"

    if abs(score) <= NET_ZERO_TOLERANCE:
        score = 0.0
    action = SignalAction.from_direction(score)
    return action, f"Net signal: {basis} score {score:+.3f} -> {action.value}"


CONFLICT_POLICIES: dict[ConflictPolicy, ResolverFn] = {
    ConflictPolicy.PRIORITY: resolve_by_priority,
    ConflictPolicy.VOTING: resolve_by_voting,
    ConflictPolicy.NET_SIGNAL: resolve_by_net_signal,
}


class ConflictResolver:
    """Picks one action per instrument batch under the layer's conflict policy.

    Stateless; one instance can serve any number of layers.
    """

    def resolve(
        self,
        layer: Layer,
        signals: Iterable[SignalEvent],
        capital_fractions: Optional[Mapping[str, float]] = None,
    ) -> SignalAction:
        """Return the single action for one instrument batch.

        Args:
            layer: Layer whose members and conflict policy apply
            signals: Signals for one symbol within one UTC day
            capital_fractions: Optional {strategy_id: fraction} weights for
                the net-signal policy

        Returns:
            BUY, SELL or HOLD

        Raises:
            InputError: If the batch mixes symbols or days
        """
        return self.resolve_detailed(layer, signals, capital_fractions).action

    def resolve_detailed(
        self,
        layer: Layer,
        signals: Iterable[SignalEvent],
        capital_fractions: Optional[Mapping[str, float]] = None,
        policy: Optional[ConflictPolicy] = None,
    ) -> ConflictResolution:
        """Resolve one instrument batch and explain the decision.

        Args:
            layer: Layer whose members and conflict policy apply
            signals: Signals for one symbol within one UTC day
            capital_fractions: Optional weights for the net-signal policy
            policy: Override for layer.conflict_policy

        Returns:
            ConflictResolution with action, contributors and reasoning

        Raises:
            InputError: If the batch mixes symbols or days
        """
        batch = list(signals)
        method = ConflictPolicy(policy or layer.conflict_policy)

        symbols = {signal.symbol for signal in batch}
        buckets = {signal.bucket for signal in batch}
        if len(symbols) > 1 or len(buckets) > 1:
            raise InputError(
                "Conflict batch must contain one symbol within one UTC day",
                context={
                    "symbols": ",".join(sorted(symbols)),
                    "days": ",".join(str(day) for day in sorted(buckets)),
                },
            )
        symbol = next(iter(symbols), None)
        bucket = next(iter(buckets), None)

        votes = self._collect_votes(layer, batch)
        if not votes:
            return ConflictResolution(
                symbol=symbol,
                bucket=bucket,
                action=SignalAction.HOLD,
                method=method,
                reasoning="No actionable signals from enabled members",
            )

        action, reasoning = CONFLICT_POLICIES[method](votes, layer, capital_fractions)
        directions = {vote.direction for vote in votes.values()}
        conflicts = 1 in directions and -1 in directions
        if conflicts:
            logger.debug(
                "Conflict on %s (%s): %d strategies disagree, %s resolves to %s",
                symbol,
                bucket,
                len(votes),
                method.value,
                action.value,
            )

        return ConflictResolution(
            symbol=symbol,
            bucket=bucket,
            action=action,
            method=method,
            conflicts=conflicts,
            contributors=tuple(sorted(votes)),
            reasoning=reasoning,
        )

    def coordinate(
        self,
        layer: Layer,
        signals: Iterable[SignalEvent],
        capital_fractions: Optional[Mapping[str, float]] = None,
    ) -> list[ConflictResolution]:
        """Resolve a mixed batch of signals across symbols and days.

        Signals are grouped by (symbol, UTC day) and each group is resolved
        independently. HOLD outcomes are dropped.

        Returns:
            Actionable resolutions ordered by (day, symbol)
        """
        groups: dict[tuple, list[SignalEvent]] = defaultdict(list)
        for signal in signals:
            groups[(signal.bucket, signal.symbol)].append(signal)

        resolved = []
        for key in sorted(groups):
            resolution = self.resolve_detailed(layer, groups[key], capital_fractions)
            if resolution.action is not SignalAction.HOLD:
                resolved.append(resolution)

        logger.info(
            "Coordinated %d symbol-day groups for layer %s: %d actionable",
            len(groups),
            layer.id,
            len(resolved),
        )
        return resolved

    @staticmethod
    def _collect_votes(layer: Layer, batch: list[SignalEvent]) -> dict[str, SignalAction]:
        """Reduce the batch to one vote per enabled member."""
        by_strategy: dict[str, list[SignalEvent]] = defaultdict(list)
        for signal in batch:
            member = layer.get_member(signal.strategy_id)
            if member is None or not member.enabled:
                logger.debug(
                    "Ignoring signal from %s: not an enabled member of layer %s",
                    signal.strategy_id,
                    layer.id,
                )
                continue
            by_strategy[signal.strategy_id].append(signal)

        votes = {}
        for strategy_id, events in by_strategy.items():
            latest = max(event.timestamp for event in events)
            net = sum(event.value for event in events if event.timestamp == latest)
            votes[strategy_id] = SignalAction.from_direction(net)
        return votes
