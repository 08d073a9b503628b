"""Caller-facing facade over the layer coordination services.

LayerCoordinator wires the collaborators into the four services and handles
the collaborator reads each operation needs: it loads the layer, fetches
member performance in parallel for the performance-driven policies, and
supplies stored capital fractions to net-signal conflict resolution.
"""
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from amplayer.config.parameters import DEFAULT_PARAMETERS, LayeringParameters
from amplayer.layering.allocation_engine import CapitalAllocator
from amplayer.layering.collaborators import (
    AllocationStore,
    LayerConfigSource,
    PerformanceSource,
    SignalHistorySource,
)
from amplayer.layering.conflict_resolver import ConflictResolver
from amplayer.layering.correlation_service import CorrelationAnalyzer
from amplayer.layering.fetch import fetch_performance
from amplayer.layering.rebalancer import RebalancingPlanner
from amplayer.models.allocation import PortfolioAllocation
from amplayer.models.conflict import ConflictResolution
from amplayer.models.correlation import CorrelationReport
from amplayer.models.enums import CapitalPolicy, ConflictPolicy, SignalAction
from amplayer.models.layer import Layer, LookbackWindow
from amplayer.models.performance import PerformanceSnapshot
from amplayer.models.rebalance import RebalancePlan
from amplayer.models.signal import SignalEvent

logger = logging.getLogger(__name__)

PERFORMANCE_POLICIES = (CapitalPolicy.DYNAMIC, CapitalPolicy.KELLY)


class LayerCoordinator:
    """Entry point for allocation, correlation, rebalancing and conflicts.

    Attributes:
        config_source: Layer configuration collaborator
        performance_source: Performance collaborator
        allocation_store: Current-allocation collaborator
        params: Tuning parameters shared by every service
        allocator: CapitalAllocator
        correlation: CorrelationAnalyzer
        planner: RebalancingPlanner
        resolver: ConflictResolver
    """

    def __init__(
        self,
        config_source: LayerConfigSource,
        performance_source: PerformanceSource,
        history_source: SignalHistorySource,
        allocation_store: AllocationStore,
        params: LayeringParameters = DEFAULT_PARAMETERS,
    ):
        self.config_source = config_source
        self.performance_source = performance_source
        self.allocation_store = allocation_store
        self.params = params
        self.allocator = CapitalAllocator(params)
        self.correlation = CorrelationAnalyzer(config_source, history_source, params)
        self.planner = RebalancingPlanner(allocation_store, self.allocator, params)
        self.resolver = ConflictResolver()

    @classmethod
    def from_store(
        cls, store, params: LayeringParameters = DEFAULT_PARAMETERS
    ) -> "LayerCoordinator":
        """Build a coordinator whose collaborators are all one store object."""
        return cls(store, store, store, store, params)

    def allocate(
        self,
        layer_id: str,
        total_capital: float,
        lookback_days: Optional[int] = None,
        as_of: Optional[datetime] = None,
        policy: Optional[CapitalPolicy] = None,
    ) -> PortfolioAllocation:
        """Allocate total_capital across the layer's enabled strategies.

        Args:
            layer_id: Layer to allocate
            total_capital: Capital to split
            lookback_days: Performance lookback (dynamic and Kelly policies)
            as_of: Lookback window end (defaults to now, UTC)
            policy: Override for the layer's capital policy

        Returns:
            PortfolioAllocation with one result per enabled strategy
        """
        layer = self.config_source.get_layer_config(layer_id)
        chosen = CapitalPolicy(policy or layer.capital_policy)
        performance = self._performance_for(layer, chosen, lookback_days, as_of)
        results = self.allocator.allocate(layer, total_capital, performance, chosen)
        return PortfolioAllocation(
            layer_id=layer.id,
            policy=chosen,
            total_capital=total_capital,
            allocations=results,
        )

    def analyze_correlation(
        self,
        layer_id: str,
        lookback_days: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> CorrelationReport:
        """Correlate the signal history of the layer's enabled strategies."""
        return self.correlation.analyze(layer_id, lookback_days, as_of)

    def plan_rebalance(
        self,
        layer_id: str,
        lookback_days: Optional[int] = None,
        total_capital: Optional[float] = None,
        as_of: Optional[datetime] = None,
    ) -> RebalancePlan:
        """Plan a rebalance of the layer against a freshly computed target.

        Nothing is written; pass the plan to ``commit_rebalance`` to apply it.
        """
        layer = self.config_source.get_layer_config(layer_id)
        lookback = lookback_days or self.params.default_lookback_days
        performance = self._performance_for(layer, layer.capital_policy, lookback, as_of)
        return self.planner.plan(layer, performance, lookback, total_capital)

    def commit_rebalance(self, plan: RebalancePlan) -> bool:
        """Apply a previously returned plan. See RebalancingPlanner.commit."""
        return self.planner.commit(plan)

    def resolve_conflict(self, layer_id: str, signals: Iterable[SignalEvent]) -> SignalAction:
        """Resolve one (symbol, UTC day) batch to a single action."""
        layer = self.config_source.get_layer_config(layer_id)
        return self.resolver.resolve(layer, signals, self._capital_fractions(layer))

    def coordinate_signals(
        self, layer_id: str, signals: Iterable[SignalEvent]
    ) -> list[ConflictResolution]:
        """Resolve a mixed batch per (symbol, UTC day); HOLD outcomes are dropped."""
        layer = self.config_source.get_layer_config(layer_id)
        return self.resolver.coordinate(layer, signals, self._capital_fractions(layer))

    def _performance_for(
        self,
        layer: Layer,
        policy: CapitalPolicy,
        lookback_days: Optional[int],
        as_of: Optional[datetime],
    ) -> dict[str, PerformanceSnapshot]:
        """Fetch member performance when the policy consumes it."""
        if policy not in PERFORMANCE_POLICIES or not layer.enabled_members:
            return {}
        window = LookbackWindow.trailing(
            lookback_days or self.params.default_lookback_days, as_of
        )
        return fetch_performance(
            self.performance_source,
            [member.strategy_id for member in layer.enabled_members],
            window,
            max_workers=self.params.max_fetch_workers,
        )

    def _capital_fractions(self, layer: Layer) -> Optional[dict[str, float]]:
        """Stored capital fractions for net-signal weighting, if any capital is stored."""
        if layer.conflict_policy is not ConflictPolicy.NET_SIGNAL:
            return None
        current = self.allocation_store.get_current_allocation(layer.id)
        if current.deployed <= 0:
            logger.debug("Layer %s has no stored capital; net signal is unweighted", layer.id)
            return None
        return {
            strategy_id: dollars / current.deployed
            for strategy_id, dollars in current.allocations.items()
        }
