"""Conflict resolution result model."""
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from amplayer.models.enums import ConflictPolicy, SignalAction


class ConflictResolution(BaseModel):
    """Single action chosen for one instrument in one simultaneity bucket.

    Attributes:
        symbol: Instrument the signals targeted (None for an empty batch)
        bucket: UTC calendar day of the batch (None for an empty batch)
        action: Resolved action
        method: Policy that produced the action
        conflicts: True if participating members disagreed on direction
        contributors: Strategy ids whose votes counted, sorted
        reasoning: Audit string describing the decision
    """

    model_config = ConfigDict(frozen=True)

    symbol: Optional[str] = None
    bucket: Optional[date] = None
    action: SignalAction
    method: ConflictPolicy
    conflicts: bool = False
    contributors: tuple[str, ...] = Field(default_factory=tuple)
    reasoning: str
