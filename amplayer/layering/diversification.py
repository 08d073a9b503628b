"""Diversification metrics for layer correlation analysis.

This module turns pairwise signal correlations into a strength bucket per
pair and a single 0-100 diversification score per layer. Higher scores mean
the layer's strategies trade more independently of one another.
"""
import math
from collections.abc import Sequence

from amplayer.config.parameters import DEFAULT_PARAMETERS, LayeringParameters
from amplayer.models.enums import CorrelationStrength


def classify_correlation(
    correlation: float, params: LayeringParameters = DEFAULT_PARAMETERS
) -> CorrelationStrength:
    """Bucket a correlation coefficient by its absolute value.

    Args:
        correlation: Pearson coefficient in [-1, 1]
        params: Thresholds (high >= 0.7, medium >= 0.4 by default)

    Returns:
        HIGH, MEDIUM or LOW

    Examples:
        >>> classify_correlation(-0.75).value
        'high'
        >>> classify_correlation(0.39).value
        'low'
    """
    magnitude = abs(correlation)
    if magnitude >= params.high_correlation:
        return CorrelationStrength.HIGH
    if magnitude >= params.medium_correlation:
        return CorrelationStrength.MEDIUM
    return CorrelationStrength.LOW


def aggregate_correlations(correlations: Sequence[float]) -> tuple[float, float]:
    """Return (mean |r|, max |r|) across pair correlations.

    An empty sequence aggregates to (0.0, 0.0).
    """
    if not correlations:
        return 0.0, 0.0
    magnitudes = [abs(value) for value in correlations]
    return sum(magnitudes) / len(magnitudes), max(magnitudes)


def calculate_diversification_score(avg_correlation: float, max_correlation: float) -> int:
    """Score layer diversification on a 0-100 scale.

    score = round(50 * (1 - avg|r|) + 50 * (1 - max|r|)), rounding halves
    upward. Both inputs lie in [0, 1], so the score is bounded by
    construction; the final clamp only absorbs float noise.

    Args:
        avg_correlation: Mean absolute pairwise correlation
        max_correlation: Maximum absolute pairwise correlation

    Returns:
        Integer score in [0, 100]

    Examples:
        >>> calculate_diversification_score(0.0, 0.0)
        100
        >>> calculate_diversification_score(0.25, 0.5)
        63
    """
    raw = 50.0 * (1.0 - avg_correlation) + 50.0 * (1.0 - max_correlation)
    score = math.floor(raw + 0.5)
    return max(0, min(100, score))
