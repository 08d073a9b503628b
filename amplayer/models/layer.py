"""Layer entity models for multi-strategy coordination.

This module defines the layer (a named capital pool shared by several
strategies), its member bindings, and the lookback window used when asking
collaborators for history.
"""
from datetime import UTC, datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from amplayer.models.enums import CapitalPolicy, ConflictPolicy


class LayerMember(BaseModel):
    """Binding of one strategy into a layer.

    Attributes:
        strategy_id: Identifier of the strategy ("amp")
        priority: Integer priority; higher wins conflicts
        weight: Static weight fraction for the weighted policy (0..1)
        enabled: Whether the member participates; removal disables
    """

    strategy_id: str = Field(..., min_length=1)
    priority: int = Field(default=50)
    weight: float = Field(default=0.0, ge=0.0, le=1.0)
    enabled: bool = Field(default=True)


class Layer(BaseModel):
    """A set of strategies sharing one capital pool and one policy of each kind.

    Attributes:
        id: Layer identifier
        owner: Owning user identifier
        name: Display name
        active: Whether the layer is active (layers are disabled, not deleted)
        conflict_policy: Conflict-resolution policy
        capital_policy: Capital allocation policy
        members: Strategy bindings; strategy ids are unique
    """

    id: str = Field(..., min_length=1)
    owner: str = Field(default="")
    name: str = Field(default="")
    active: bool = Field(default=True)
    conflict_policy: ConflictPolicy = Field(default=ConflictPolicy.PRIORITY)
    capital_policy: CapitalPolicy = Field(default=CapitalPolicy.WEIGHTED)
    members: list[LayerMember] = Field(default_factory=list)

    @field_validator("members")
    @classmethod
    def validate_unique_members(cls, value: list[LayerMember]) -> list[LayerMember]:
        """Validate that no strategy is bound twice."""
        seen: set[str] = set()
        for member in value:
            if member.strategy_id in seen:
                raise ValueError(
                    f"Duplicate strategy in layer: {member.strategy_id}"
                )
            seen.add(member.strategy_id)
        return value

    @property
    def enabled_members(self) -> list[LayerMember]:
        """Return enabled members in configuration order."""
        return [member for member in self.members if member.enabled]

    def get_member(self, strategy_id: str) -> Optional[LayerMember]:
        """Return the member bound to strategy_id, or None."""
        for member in self.members:
            if member.strategy_id == strategy_id:
                return member
        return None


class LookbackWindow(BaseModel):
    """Half-open time window [start, end) for history queries.

    Attributes:
        start: Inclusive window start (UTC)
        end: Exclusive window end (UTC)
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def validate_timezone(cls, value: datetime) -> datetime:
        """Validate window bounds are timezone-aware."""
        if value.tzinfo is None:
            raise ValueError("Window bounds must be timezone-aware (UTC)")
        return value

    @classmethod
    def trailing(
        cls, lookback_days: int, as_of: Optional[datetime] = None
    ) -> "LookbackWindow":
        """Build a window covering the trailing lookback_days before as_of."""
        if lookback_days <= 0:
            raise ValueError("lookback_days must be positive")
        end = as_of or datetime.now(UTC)
        return cls(start=end - timedelta(days=lookback_days), end=end)

    @property
    def days(self) -> int:
        """Return the window length in whole days."""
        return (self.end - self.start).days

    def contains(self, moment: datetime) -> bool:
        """Return True if moment falls inside the window."""
        return self.start <= moment < self.end
