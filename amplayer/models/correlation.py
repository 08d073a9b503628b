"""Correlation report entities for layer signal analysis.

This module defines per-pair correlation results and the layer-level report
with its aggregate statistics and diversification score.
"""
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from amplayer.models.enums import CorrelationStrength


class PairCorrelation(BaseModel):
    """Correlation between the daily signal series of two strategies.

    Attributes:
        strategy1: First strategy identifier
        strategy2: Second strategy identifier
        correlation: Pearson coefficient in [-1, 1]
        strength: Bucket of |correlation|
        overlap: Number of common dates the coefficient was computed on
    """

    model_config = ConfigDict(frozen=True)

    strategy1: str
    strategy2: str
    correlation: float = Field(..., ge=-1.0, le=1.0)
    strength: CorrelationStrength
    overlap: int = Field(default=0, ge=0)

    @property
    def low_confidence(self) -> bool:
        """Return True if fewer than 2 common dates backed the coefficient."""
        return self.overlap < 2

    @staticmethod
    def make_key(strategy_a: str, strategy_b: str) -> str:
        """Create lexicographically ordered key for a strategy pair.

        Args:
            strategy_a: First strategy identifier
            strategy_b: Second strategy identifier

        Returns:
            Sorted key string (e.g., 'meanrev:momentum')
        """
        ids = sorted([strategy_a, strategy_b])
        return f"{ids[0]}:{ids[1]}"


class CorrelationReport(BaseModel):
    """Pairwise signal correlation summary for one layer.

    Attributes:
        layer_id: Layer analyzed
        strategy_ids: Strategies included, in analysis order
        pairs: One entry per unordered strategy pair
        avg_correlation: Mean |correlation| across pairs
        max_correlation: Maximum |correlation| across pairs
        diversification_score: 0-100, higher is more diversified
        timestamp: Computation timestamp
    """

    layer_id: str
    strategy_ids: list[str]
    pairs: list[PairCorrelation]
    avg_correlation: float = Field(..., ge=0.0, le=1.0)
    max_correlation: float = Field(..., ge=0.0, le=1.0)
    diversification_score: int = Field(..., ge=0, le=100)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def get_correlation(self, strategy_a: str, strategy_b: str) -> float:
        """Get correlation between two strategies.

        Returns:
            1.0 for a strategy with itself, the pair coefficient, or 0.0 if
            the pair is unknown
        """
        if strategy_a == strategy_b:
            return 1.0
        key = PairCorrelation.make_key(strategy_a, strategy_b)
        for pair in self.pairs:
            if PairCorrelation.make_key(pair.strategy1, pair.strategy2) == key:
                return pair.correlation
        return 0.0

    def matrix(self) -> dict[str, dict[str, float]]:
        """Return the full symmetric correlation matrix as nested dicts."""
        return {
            row: {col: self.get_correlation(row, col) for col in self.strategy_ids}
            for row in self.strategy_ids
        }

    @property
    def high_pairs(self) -> list[PairCorrelation]:
        """Return pairs classified as highly correlated."""
        return [
            pair for pair in self.pairs if pair.strength is CorrelationStrength.HIGH
        ]
