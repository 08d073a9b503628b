"""Allocation result models for layer capital allocation.

This module defines the per-strategy result returned by the capital
allocator, the layer-level wrapper, and the stored current allocation
carrying its optimistic-concurrency version token.
"""
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from amplayer.models.enums import CapitalPolicy


class AllocationResult(BaseModel):
    """Capital assigned to one strategy by one allocation call.

    Attributes:
        strategy_id: Strategy receiving capital
        allocated: Dollar amount allocated
        fraction: Share of total capital in [0, 1]
        rationale: Human-readable audit string naming policy and key input
    """

    model_config = ConfigDict(frozen=True)

    strategy_id: str
    allocated: float = Field(..., ge=0.0)
    fraction: float = Field(..., ge=0.0, le=1.0)
    rationale: str


class PortfolioAllocation(BaseModel):
    """Layer-level allocation summary.

    Attributes:
        layer_id: Layer the allocation belongs to
        policy: Capital policy that produced it
        total_capital: Capital that was split
        allocations: Per-strategy results (empty if no enabled members)
        timestamp: Computation timestamp
    """

    layer_id: str
    policy: CapitalPolicy
    total_capital: float = Field(..., gt=0.0)
    allocations: list[AllocationResult] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def allocated_total(self) -> float:
        """Return the sum of allocated dollars."""
        return sum(result.allocated for result in self.allocations)

    def as_dollars(self) -> dict[str, float]:
        """Return {strategy_id: dollars}."""
        return {result.strategy_id: result.allocated for result in self.allocations}


class CurrentAllocation(BaseModel):
    """Stored per-strategy dollars for a layer plus its version token.

    Attributes:
        layer_id: Layer identifier
        allocations: Per-strategy dollars currently assigned
        unallocated: Layer capital held in reserve, not assigned to a strategy
        version: Monotonic version incremented on every applied write
    """

    model_config = ConfigDict(frozen=True)

    layer_id: str
    allocations: dict[str, float] = Field(default_factory=dict)
    unallocated: float = Field(default=0.0, ge=0.0)
    version: int = Field(default=0, ge=0)

    @field_validator("allocations")
    @classmethod
    def validate_allocations(cls, value: dict[str, float]) -> dict[str, float]:
        """Validate all allocations are non-negative."""
        for strategy_id, dollars in value.items():
            if dollars < 0:
                raise ValueError(
                    f"Allocation must be non-negative for strategy {strategy_id}"
                )
        return value

    @property
    def deployed(self) -> float:
        """Return dollars currently assigned to strategies."""
        return sum(self.allocations.values())

    @property
    def total(self) -> float:
        """Return layer capital: assigned dollars plus the reserve."""
        return self.deployed + self.unallocated
