"""Rebalancing plan models.

A RebalancePlan is an immutable value produced by the planner and handed
back unchanged to commit. It pins the allocation version it was computed
against so a commit can be rejected when the stored allocation has moved.
"""
import uuid
from datetime import UTC, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AllocationChange(BaseModel):
    """Proposed move for one strategy.

    Attributes:
        strategy_id: Strategy being moved
        current: Dollars currently allocated
        target: Uncapped target dollars from the allocator
        proposed: Dollars that will be written on commit (after capping)
        change_percent: Applied percent change relative to current
        capped: True if the target change exceeded the per-change cap
        new_allocation: True if the strategy had no current allocation
        reason: Human-readable rationale
    """

    model_config = ConfigDict(frozen=True)

    strategy_id: str
    current: float = Field(..., ge=0.0)
    target: float = Field(..., ge=0.0)
    proposed: float = Field(..., ge=0.0)
    change_percent: float
    capped: bool = False
    new_allocation: bool = False
    reason: str


class RebalancePlan(BaseModel):
    """Reviewable proposal to move a layer from current to target allocation.

    Attributes:
        plan_id: Unique plan identifier (idempotency key for commit)
        layer_id: Layer the plan applies to
        base_version: Stored allocation version the plan was computed against
        total_capital: Capital pool the target was computed for
        lookback_days: Performance lookback the plan was based on
        current: Per-strategy dollars at planning time
        proposed: Per-strategy dollars to write on commit
        unallocated: Capital the caps kept from being placed; proposed plus
            unallocated always sums to total_capital (negative when the caps
            keep more deployed than total_capital)
        changes: Per-strategy moves (empty when nothing changes)
        should_rebalance: True if the largest change exceeds the threshold
        total_change_percent: Largest absolute applied percent change
        created_at: Planning timestamp
    """

    model_config = ConfigDict(frozen=True)

    plan_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    layer_id: str
    base_version: int = Field(..., ge=0)
    total_capital: float = Field(..., gt=0.0)
    lookback_days: int = Field(..., gt=0)
    current: dict[str, float]
    proposed: dict[str, float]
    unallocated: float = 0.0
    changes: tuple[AllocationChange, ...] = ()
    should_rebalance: bool
    total_change_percent: float = Field(..., ge=0.0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def get_change(self, strategy_id: str) -> Optional[AllocationChange]:
        """Return the change for strategy_id, or None if it does not move."""
        for change in self.changes:
            if change.strategy_id == strategy_id:
                return change
        return None

    @property
    def summary(self) -> str:
        """Return a one-line description used for history records."""
        return (
            f"Rebalance of layer {self.layer_id}: "
            f"{self.total_change_percent:.1f}% largest change across "
            f"{len(self.changes)} strategies"
        )


class RebalanceRecord(BaseModel):
    """History entry written when a plan is applied.

    Attributes:
        plan_id: Applied plan identifier
        layer_id: Layer rebalanced
        old_allocations: Dollars before the write
        new_allocations: Dollars after the write
        unallocated: Capital held in reserve after the write
        reason: Plan summary
        version: Allocation version after the write
        applied_at: Write timestamp
    """

    model_config = ConfigDict(frozen=True)

    plan_id: str
    layer_id: str
    old_allocations: dict[str, float]
    new_allocations: dict[str, float]
    unallocated: float = Field(default=0.0, ge=0.0)
    reason: str
    version: int
    applied_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class PersistAck(BaseModel):
    """Acknowledgement returned by persist_allocation.

    Attributes:
        layer_id: Layer written
        applied: False when the plan had already been applied (no-op)
        version: Allocation version after the call
    """

    model_config = ConfigDict(frozen=True)

    layer_id: str
    applied: bool
    version: int
