"""Collaborator interfaces consumed by the layer coordination services.

The services never own storage. Layer configuration, performance summaries,
signal history and the current allocation are read through these protocols,
and allocations are written back only through ``persist_allocation``.
Timeouts, retries and cancellation belong to the implementation; whatever
an implementation raises propagates through the services unchanged.
"""
from typing import Protocol, runtime_checkable

from amplayer.models.allocation import CurrentAllocation
from amplayer.models.layer import Layer, LookbackWindow
from amplayer.models.performance import PerformanceSnapshot
from amplayer.models.rebalance import PersistAck
from amplayer.models.signal import SignalEvent


@runtime_checkable
class LayerConfigSource(Protocol):
    """Read access to layer configuration."""

    def get_layer_config(self, layer_id: str) -> Layer:
        """Return the layer with its members and active policies."""


@runtime_checkable
class PerformanceSource(Protocol):
    """Read access to per-strategy trailing performance."""

    def get_performance(
        self, strategy_id: str, window: LookbackWindow
    ) -> PerformanceSnapshot | None:
        """Return the strategy's performance over window, or None if unknown."""


@runtime_checkable
class SignalHistorySource(Protocol):
    """Read access to signals a strategy emitted inside a layer."""

    def get_signal_history(
        self, strategy_id: str, layer_id: str, window: LookbackWindow
    ) -> list[SignalEvent]:
        """Return the strategy's signal events inside window."""


@runtime_checkable
class AllocationStore(Protocol):
    """Read/write access to the stored per-strategy allocation of a layer.

    Implementations must allow at most one in-flight write per layer and
    must reject a write whose expected_version is not the stored version.
    """

    def get_current_allocation(self, layer_id: str) -> CurrentAllocation:
        """Return stored dollars per strategy plus the version token."""

    def persist_allocation(
        self,
        layer_id: str,
        allocations: dict[str, float],
        expected_version: int,
        plan_id: str,
        reason: str,
        unallocated: float = 0.0,
    ) -> PersistAck:
        """Write allocations and the layer reserve if expected_version matches.

        A known plan_id is a no-op.
        """
