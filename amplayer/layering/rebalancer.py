"""Two-phase rebalancing for strategy layers.

Planning and committing are separate steps. ``plan`` recomputes the target
allocation through the CapitalAllocator, diffs it against the stored
allocation and bounds every per-strategy move. Capital a capped move holds
back is spread over the strategies that can still move; what none of them
can take is kept on the plan as unallocated. ``plan`` never writes. ``commit``
takes a plan back and writes its proposed allocation through the allocation
store, guarded by the version the plan was computed against and keyed by
the plan id so that re-committing the same plan is a no-op.
"""
import logging
import math
from collections.abc import Mapping
from typing import Optional

from amplayer.config.parameters import DEFAULT_PARAMETERS, LayeringParameters
from amplayer.layering.allocation_engine import CapitalAllocator
from amplayer.layering.collaborators import AllocationStore
from amplayer.layering.errors import InputError
from amplayer.models.layer import Layer
from amplayer.models.performance import PerformanceSnapshot
from amplayer.models.rebalance import AllocationChange, RebalancePlan

logger = logging.getLogger(__name__)

# Dollar differences below this are treated as "no change".
CHANGE_TOLERANCE = 0.005


class RebalancingPlanner:
    """Decides if and how to move a layer from current to target allocation.

    Attributes:
        store: Allocation store collaborator (read for plan, write for commit)
        allocator: CapitalAllocator used to compute fresh targets
        params: Tuning parameters (threshold and per-change cap)
    """

    def __init__(
        self,
        store: AllocationStore,
        allocator: Optional[CapitalAllocator] = None,
        params: LayeringParameters = DEFAULT_PARAMETERS,
    ):
        """Initialize rebalancing planner.

        Args:
            store: Allocation store collaborator
            allocator: Allocator for target computation (built from params
                when omitted)
            params: Tuning parameters
        """
        self.store = store
        self.params = params
        self.allocator = allocator or CapitalAllocator(params)

    def plan(
        self,
        layer: Layer,
        performance: Optional[Mapping[str, PerformanceSnapshot]] = None,
        lookback_days: Optional[int] = None,
        total_capital: Optional[float] = None,
    ) -> RebalancePlan:
        """Build a reviewable rebalancing plan. Never writes.

        Args:
            layer: Layer to rebalance
            performance: Snapshots keyed by strategy id
            lookback_days: Lookback the performance covers (recorded on the plan)
            total_capital: Capital pool to target; defaults to the sum of the
                current allocation

        Returns:
            Immutable RebalancePlan

        Raises:
            InputError: If the layer has no enabled members or no usable
                capital total
        """
        if not layer.enabled_members:
            raise InputError(
                "Cannot plan a rebalance for a layer with no enabled strategies",
                context={"layer_id": layer.id},
            )

        stored = self.store.get_current_allocation(layer.id)
        capital = stored.total if total_capital is None else total_capital
        if not math.isfinite(capital) or capital <= 0:
            raise InputError(
                "Rebalance requires a positive capital total",
                context={"layer_id": layer.id, "total_capital": capital},
            )

        targets = {
            result.strategy_id: result.allocated
            for result in self.allocator.allocate(layer, capital, performance)
        }
        current = dict(stored.allocations)

        # enabled targets first (configuration order), then strategies that
        # only exist in the stored allocation
        order = list(targets) + sorted(set(current) - set(targets))
        proposed = {}
        capped = set()
        for strategy_id in order:
            before = current.get(strategy_id, 0.0)
            after, was_capped = self._bound(before, targets.get(strategy_id, 0.0))
            if strategy_id in current or after > 0:
                proposed[strategy_id] = after
            if was_capped:
                capped.add(strategy_id)

        absorbing = [
            strategy_id
            for strategy_id in targets
            if strategy_id not in capped and proposed.get(strategy_id, 0.0) > 0
        ]
        unallocated = self._redistribute(capital, current, proposed, absorbing)

        changes = []
        for strategy_id in order:
            change = self._describe(
                strategy_id,
                current.get(strategy_id, 0.0),
                targets.get(strategy_id, 0.0),
                proposed.get(strategy_id, 0.0),
                strategy_id in capped,
            )
            if change is not None:
                changes.append(change)

        total_change = max((abs(change.change_percent) for change in changes), default=0.0)
        should_rebalance = total_change > self.params.min_rebalance_threshold

        plan = RebalancePlan(
            layer_id=layer.id,
            base_version=stored.version,
            total_capital=capital,
            lookback_days=lookback_days or self.params.default_lookback_days,
            current=current,
            proposed=proposed,
            unallocated=unallocated,
            changes=tuple(changes),
            should_rebalance=should_rebalance,
            total_change_percent=total_change,
        )

        logger.info(
            "Planned rebalance %s for layer %s: %d changes, largest %.2f%%, "
            "unallocated %.2f, rebalance=%s",
            plan.plan_id,
            layer.id,
            len(changes),
            total_change,
            unallocated,
            should_rebalance,
        )
        return plan

    def commit(self, plan: RebalancePlan) -> bool:
        """Apply a plan through the allocation store.

        Args:
            plan: Plan previously returned by ``plan``

        Returns:
            True if the allocation was written; False if the plan did not
            recommend rebalancing or was already applied

        Raises:
            StaleAllocationError: If the stored allocation moved since planning
        """
        if not plan.should_rebalance:
            logger.info(
                "Plan %s for layer %s does not recommend rebalancing; nothing written",
                plan.plan_id,
                plan.layer_id,
            )
            return False

        ack = self.store.persist_allocation(
            plan.layer_id,
            plan.proposed,
            expected_version=plan.base_version,
            unallocated=max(plan.unallocated, 0.0),
            plan_id=plan.plan_id,
            reason=plan.summary,
        )
        if not ack.applied:
            logger.info(
                "Plan %s for layer %s already applied; commit is a no-op",
                plan.plan_id,
                plan.layer_id,
            )
            return False

        logger.info(
            "Committed plan %s for layer %s (version %d)",
            plan.plan_id,
            plan.layer_id,
            ack.version,
        )
        return True

    def _bound(self, current: float, target: float) -> tuple[float, bool]:
        """Clip the move toward target to the per-change cap.

        Returns:
            (proposed dollars, True if the cap applied)
        """
        if abs(target - current) < CHANGE_TOLERANCE:
            return current, False
        if current <= 0:
            return target, False

        cap = self.params.max_allocation_change
        raw_percent = (target - current) / current * 100.0
        if abs(raw_percent) <= cap:
            return target, False
        return current * (1.0 + math.copysign(cap, raw_percent) / 100.0), True

    def _redistribute(
        self,
        capital: float,
        current: Mapping[str, float],
        proposed: dict[str, float],
        absorbing: list[str],
    ) -> float:
        """Spread capital held back by capped moves over strategies that can still move.

        Each pass shares the remainder in proportion to the proposed dollars
        of the absorbing strategies, clipping any that reach their own cap.
        Passes repeat until the remainder is placed or nobody can absorb it.
        Mutates ``proposed``.

        Returns:
            Capital left over (negative when the caps keep more deployed than
            ``capital``)
        """
        cap = self.params.max_allocation_change / 100.0
        free = list(absorbing)
        while free:
            remainder = capital - sum(proposed.values())
            base = sum(proposed[strategy_id] for strategy_id in free)
            if abs(remainder) < CHANGE_TOLERANCE or base <= 0:
                break

            saturated = []
            for strategy_id in free:
                before = current.get(strategy_id, 0.0)
                candidate = proposed[strategy_id] + remainder * proposed[strategy_id] / base
                # new allocations have no reference point to cap against
                low = max(0.0, before * (1.0 - cap)) if before > 0 else 0.0
                high = before * (1.0 + cap) if before > 0 else math.inf
                if not low <= candidate <= high:
                    candidate = min(max(candidate, low), high)
                    saturated.append(strategy_id)
                proposed[strategy_id] = candidate

            if not saturated:
                break
            free = [strategy_id for strategy_id in free if strategy_id not in saturated]

        leftover = capital - sum(proposed.values())
        if abs(leftover) < CHANGE_TOLERANCE:
            return 0.0
        logger.warning(
            "Caps leave %.2f of %.2f unplaced; keeping it as unallocated capital",
            leftover,
            capital,
        )
        return leftover

    def _describe(
        self,
        strategy_id: str,
        current: float,
        target: float,
        proposed: float,
        capped: bool,
    ) -> Optional[AllocationChange]:
        """Describe one strategy's move, or None if it does not move."""
        if abs(proposed - current) < CHANGE_TOLERANCE:
            return None

        cap = self.params.max_allocation_change
        threshold = self.params.min_rebalance_threshold
        absorbed = abs(proposed - target) >= CHANGE_TOLERANCE and not capped

        if current <= 0:
            reason = "New allocation for a strategy with no current capital"
            if absorbed:
                reason += "; absorbs capital held back by capped moves"
            return AllocationChange(
                strategy_id=strategy_id,
                current=0.0,
                target=target,
                proposed=proposed,
                change_percent=100.0,
                new_allocation=True,
                reason=reason,
            )

        applied_percent = (proposed - current) / current * 100.0
        if applied_percent > threshold:
            reason = "Increase allocation due to strong performance"
        elif applied_percent < -threshold:
            reason = "Decrease allocation due to underperformance"
        else:
            reason = "Minor adjustment for optimization"
        if capped:
            raw_percent = (target - current) / current * 100.0
            reason += (
                f"; capped at {cap:.0f}% for risk management "
                f"(target change {raw_percent:+.1f}%)"
            )
        elif absorbed:
            reason += "; absorbs capital held back by capped moves"

        return AllocationChange(
            strategy_id=strategy_id,
            current=current,
            target=target,
            proposed=proposed,
            change_percent=applied_percent,
            capped=capped,
            reason=reason,
        )
