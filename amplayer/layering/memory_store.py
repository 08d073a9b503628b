"""In-memory layer store implementing every collaborator protocol.

InMemoryLayerStore keeps layer configuration, member bindings, daily
performance records, signal history and the current allocation of each
layer in process memory. It backs the CLI and the tests; a durable store
implements the same protocols.

Layer edits follow the configuration rules of the layer service: new
layers start with priority conflict resolution and weighted capital, new
members join with priority 50, weights must lie in [0, 1], and removing a
member disables it. Allocation writes are serialized per layer and guarded
by the stored version token; every applied write is kept as a
RebalanceRecord.
"""
import logging
import math
import threading
import uuid
from collections import defaultdict
from collections.abc import Iterable
from typing import Optional

from amplayer.layering.errors import InputError, StaleAllocationError, UnknownLayerError
from amplayer.layering.performance import summarize_performance
from amplayer.models.allocation import CurrentAllocation
from amplayer.models.enums import CapitalPolicy, ConflictPolicy
from amplayer.models.layer import Layer, LayerMember, LookbackWindow
from amplayer.models.performance import DailyPerformanceRecord, PerformanceSnapshot
from amplayer.models.rebalance import PersistAck, RebalanceRecord
from amplayer.models.signal import SignalEvent

logger = logging.getLogger(__name__)

DEFAULT_MEMBER_PRIORITY = 50


class InMemoryLayerStore:
    """Process-local implementation of the layer collaborator protocols.

    Attributes:
        capital_base: Capital each strategy's daily PnL is measured against
            when summarizing performance
    """

    def __init__(self, capital_base: float = 100_000.0):
        if not math.isfinite(capital_base) or capital_base <= 0:
            raise InputError(
                "capital_base must be positive", context={"capital_base": capital_base}
            )
        self.capital_base = capital_base
        self._layers: dict[str, Layer] = {}
        self._allocations: dict[str, CurrentAllocation] = {}
        self._history: dict[str, list[RebalanceRecord]] = defaultdict(list)
        self._applied_plans: dict[str, set[str]] = defaultdict(set)
        self._performance: dict[str, list[DailyPerformanceRecord]] = defaultdict(list)
        self._signals: dict[tuple[str, str], list[SignalEvent]] = defaultdict(list)
        self._registry_lock = threading.Lock()
        self._layer_locks: dict[str, threading.Lock] = {}

    # Layer configuration

    def create_layer(
        self,
        owner: str,
        name: str,
        layer_id: Optional[str] = None,
        conflict_policy: ConflictPolicy = ConflictPolicy.PRIORITY,
        capital_policy: CapitalPolicy = CapitalPolicy.WEIGHTED,
    ) -> Layer:
        """Create an empty active layer and return it."""
        layer = Layer(
            id=layer_id or uuid.uuid4().hex,
            owner=owner,
            name=name,
            conflict_policy=conflict_policy,
            capital_policy=capital_policy,
        )
        with self._registry_lock:
            if layer.id in self._layers:
                raise InputError("Layer already exists", context={"layer_id": layer.id})
            self._layers[layer.id] = layer
            self._layer_locks[layer.id] = threading.Lock()
            self._allocations[layer.id] = CurrentAllocation(layer_id=layer.id)

        logger.info("Created layer %s (%s) for owner %s", layer.id, name, owner)
        return layer.model_copy(deep=True)

    def save_layer(self, layer: Layer) -> Layer:
        """Insert or replace a fully specified layer."""
        with self._registry_lock:
            self._layers[layer.id] = layer.model_copy(deep=True)
            self._layer_locks.setdefault(layer.id, threading.Lock())
            self._allocations.setdefault(layer.id, CurrentAllocation(layer_id=layer.id))
        return layer.model_copy(deep=True)

    def get_layer_config(self, layer_id: str) -> Layer:
        """Return a copy of the layer with its members and policies."""
        return self._get_layer(layer_id).model_copy(deep=True)

    def list_owner_layers(self, owner: str) -> list[Layer]:
        """Return the owner's layers ordered by name."""
        layers = [layer for layer in self._layers.values() if layer.owner == owner]
        layers.sort(key=lambda layer: layer.name)
        return [layer.model_copy(deep=True) for layer in layers]

    def toggle_layer(self, layer_id: str, active: bool) -> Layer:
        """Activate or deactivate a layer."""
        return self._update_layer(layer_id, active=active)

    def update_policies(
        self,
        layer_id: str,
        conflict_policy: Optional[ConflictPolicy] = None,
        capital_policy: Optional[CapitalPolicy] = None,
    ) -> Layer:
        """Replace the layer's conflict and/or capital policy."""
        update = {}
        if conflict_policy is not None:
            update["conflict_policy"] = ConflictPolicy(conflict_policy)
        if capital_policy is not None:
            update["capital_policy"] = CapitalPolicy(capital_policy)
        return self._update_layer(layer_id, **update)

    # Member bindings

    def add_member(
        self,
        layer_id: str,
        strategy_id: str,
        priority: int = DEFAULT_MEMBER_PRIORITY,
        weight: float = 0.0,
    ) -> Layer:
        """Bind a strategy into a layer, re-enabling it if it was removed."""
        self._check_weight(layer_id, strategy_id, weight)
        layer = self._get_layer(layer_id)
        existing = layer.get_member(strategy_id)
        if existing is not None and existing.enabled:
            raise InputError(
                "Strategy already belongs to layer",
                context={"layer_id": layer_id, "strategy_id": strategy_id},
            )

        member = LayerMember(strategy_id=strategy_id, priority=priority, weight=weight)
        if existing is None:
            members = [*layer.members, member]
        else:
            members = [member if m.strategy_id == strategy_id else m for m in layer.members]

        logger.info("Added strategy %s to layer %s", strategy_id, layer_id)
        return self._update_layer(layer_id, members=members)

    def update_priority(self, layer_id: str, strategy_id: str, priority: int) -> Layer:
        """Set a member's conflict priority."""
        return self._update_member(layer_id, strategy_id, priority=priority)

    def update_weight(self, layer_id: str, strategy_id: str, weight: float) -> Layer:
        """Set a member's static weight; it must lie in [0, 1]."""
        self._check_weight(layer_id, strategy_id, weight)
        return self._update_member(layer_id, strategy_id, weight=weight)

    def remove_member(self, layer_id: str, strategy_id: str) -> Layer:
        """Remove a strategy from a layer by disabling its binding."""
        logger.info("Disabling strategy %s in layer %s", strategy_id, layer_id)
        return self._update_member(layer_id, strategy_id, enabled=False)

    # Performance and signal history

    def record_performance(
        self, strategy_id: str, records: Iterable[DailyPerformanceRecord]
    ) -> None:
        """Append daily performance records for a strategy."""
        self._performance[strategy_id].extend(records)

    def get_performance(
        self, strategy_id: str, window: LookbackWindow
    ) -> Optional[PerformanceSnapshot]:
        """Summarize the strategy's records that fall inside window.

        Returns:
            PerformanceSnapshot, or None if no records fall inside window or
            the strategy lost more than the capital base
        """
        first_day = window.start.date()
        last_day = window.end.date()
        records = [
            record
            for record in self._performance.get(strategy_id, [])
            if first_day <= record.day <= last_day
        ]
        if not records:
            return None
        try:
            return summarize_performance(records, self.capital_base)
        except InputError as exc:
            logger.warning(
                "Dropping performance for strategy %s: %s", strategy_id, exc
            )
            return None

    def record_signals(self, layer_id: str, events: Iterable[SignalEvent]) -> None:
        """Append signal events emitted inside a layer."""
        self._get_layer(layer_id)
        for event in events:
            self._signals[(layer_id, event.strategy_id)].append(event)

    def get_signal_history(
        self, strategy_id: str, layer_id: str, window: LookbackWindow
    ) -> list[SignalEvent]:
        """Return the strategy's signals inside window, oldest first."""
        events = self._signals.get((layer_id, strategy_id), [])
        return sorted(
            (event for event in events if window.contains(event.timestamp)),
            key=lambda event: event.timestamp,
        )

    # Allocation

    def get_current_allocation(self, layer_id: str) -> CurrentAllocation:
        """Return stored dollars per strategy plus the version token."""
        self._get_layer(layer_id)
        return self._allocations[layer_id]

    def set_allocation(
        self, layer_id: str, allocations: dict[str, float], unallocated: float = 0.0
    ) -> CurrentAllocation:
        """Overwrite the stored allocation unconditionally, bumping the version."""
        with self._lock_for(layer_id):
            current = self._allocations[layer_id]
            updated = CurrentAllocation(
                layer_id=layer_id,
                allocations=dict(allocations),
                unallocated=unallocated,
                version=current.version + 1,
            )
            self._allocations[layer_id] = updated
        return updated

    def persist_allocation(
        self,
        layer_id: str,
        allocations: dict[str, float],
        expected_version: int,
        plan_id: str,
        reason: str,
        unallocated: float = 0.0,
    ) -> PersistAck:
        """Write allocations and the reserve if expected_version is current.

        Raises:
            StaleAllocationError: If the stored version is not expected_version
            UnknownLayerError: If the layer does not exist
        """
        with self._lock_for(layer_id):
            current = self._allocations[layer_id]
            if plan_id in self._applied_plans[layer_id]:
                return PersistAck(layer_id=layer_id, applied=False, version=current.version)

            if current.version != expected_version:
                raise StaleAllocationError(
                    "Stored allocation changed since the plan was computed",
                    context={
                        "layer_id": layer_id,
                        "expected_version": expected_version,
                        "stored_version": current.version,
                    },
                )

            updated = CurrentAllocation(
                layer_id=layer_id,
                allocations=dict(allocations),
                unallocated=unallocated,
                version=current.version + 1,
            )
            self._allocations[layer_id] = updated
            self._applied_plans[layer_id].add(plan_id)
            self._history[layer_id].append(
                RebalanceRecord(
                    plan_id=plan_id,
                    layer_id=layer_id,
                    old_allocations=dict(current.allocations),
                    new_allocations=dict(allocations),
                    unallocated=unallocated,
                    reason=reason,
                    version=updated.version,
                )
            )

        logger.info(
            "Persisted allocation for layer %s at version %d (plan %s)",
            layer_id,
            updated.version,
            plan_id,
        )
        return PersistAck(layer_id=layer_id, applied=True, version=updated.version)

    def history(self, layer_id: str) -> list[RebalanceRecord]:
        """Return applied rebalancing records for a layer, oldest first."""
        self._get_layer(layer_id)
        return list(self._history[layer_id])

    # Internals

    def _get_layer(self, layer_id: str) -> Layer:
        layer = self._layers.get(layer_id)
        if layer is None:
            raise UnknownLayerError("Layer not found", context={"layer_id": layer_id})
        return layer

    def _lock_for(self, layer_id: str) -> threading.Lock:
        self._get_layer(layer_id)
        return self._layer_locks[layer_id]

    def _update_layer(self, layer_id: str, **update) -> Layer:
        with self._registry_lock:
            layer = self._get_layer(layer_id)
            # model_validate re-runs the member validators on the new state
            updated = Layer.model_validate({**layer.model_dump(), **update})
            self._layers[layer_id] = updated
        return updated.model_copy(deep=True)

    def _update_member(self, layer_id: str, strategy_id: str, **update) -> Layer:
        layer = self._get_layer(layer_id)
        if layer.get_member(strategy_id) is None:
            raise InputError(
                "Strategy is not a member of layer",
                context={"layer_id": layer_id, "strategy_id": strategy_id},
            )
        members = [
            member.model_copy(update=update) if member.strategy_id == strategy_id else member
            for member in layer.members
        ]
        return self._update_layer(layer_id, members=members)

    @staticmethod
    def _check_weight(layer_id: str, strategy_id: str, weight: float) -> None:
        if not 0.0 <= weight <= 1.0:
            raise InputError(
                "Weight must be between 0 and 1",
                context={"layer_id": layer_id, "strategy_id": strategy_id, "weight": weight},
            )
