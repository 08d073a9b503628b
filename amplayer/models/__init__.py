"""Data models and entities."""

from amplayer.models.allocation import (
    AllocationResult,
    CurrentAllocation,
    PortfolioAllocation,
)
from amplayer.models.conflict import ConflictResolution
from amplayer.models.correlation import CorrelationReport, PairCorrelation
from amplayer.models.enums import (
    CapitalPolicy,
    ConflictPolicy,
    CorrelationStrength,
    SignalAction,
)
from amplayer.models.layer import Layer, LayerMember, LookbackWindow
from amplayer.models.performance import DailyPerformanceRecord, PerformanceSnapshot
from amplayer.models.rebalance import (
    AllocationChange,
    PersistAck,
    RebalancePlan,
    RebalanceRecord,
)
from amplayer.models.signal import SignalEvent, signal_bucket

__all__ = [
    "AllocationResult",
    "CurrentAllocation",
    "PortfolioAllocation",
    "ConflictResolution",
    "CorrelationReport",
    "PairCorrelation",
    "CapitalPolicy",
    "ConflictPolicy",
    "CorrelationStrength",
    "SignalAction",
    "Layer",
    "LayerMember",
    "LookbackWindow",
    "DailyPerformanceRecord",
    "PerformanceSnapshot",
    "AllocationChange",
    "PersistAck",
    "RebalancePlan",
    "RebalanceRecord",
    "SignalEvent",
    "signal_bucket",
]
