"""
Layer coordination parameter configuration using Pydantic.

This module provides type-safe, validated tuning constants for capital
allocation, correlation classification, and rebalancing bounds. None of
these values are mathematical law; they encode risk policy and are
therefore exposed here rather than hard-coded in the services.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LayeringParameters(BaseModel):
    """
    Tuning parameters shared by the layer coordination services.

    Attributes:
        dynamic_score_floor: Minimum performance score for the dynamic
            policy (default: 0.1).
        kelly_multiplier: Fraction of full Kelly applied (default: 0.5).
        kelly_min: Lower clamp for per-strategy Kelly fraction (default: 0.01).
        kelly_max: Upper clamp for per-strategy Kelly fraction (default: 0.25).
        kelly_default: Kelly fraction used when win/loss data is missing
            (default: 0.05).
        min_rebalance_threshold: Largest percent change that must be
            exceeded before a rebalance is recommended (default: 5.0).
        max_allocation_change: Maximum absolute percent change applied to
            any single strategy in one rebalance (default: 30.0).
        high_correlation: |r| at or above which a pair is "high" (default: 0.7).
        medium_correlation: |r| at or above which a pair is "medium" (default: 0.4).
        default_lookback_days: Signal/performance lookback in days (default: 30).
        allocation_tolerance: Allowed deviation of normalized fractions from
            1.0 (default: 1e-6).
        rounding_dp: Optional decimal places for dollar rounding; None keeps
            exact float splits (default: None).
        max_fetch_workers: Thread cap for parallel collaborator fetches
            (default: 8).
    """

    dynamic_score_floor: float = Field(default=0.1, gt=0.0, le=10.0)

    kelly_multiplier: float = Field(default=0.5, gt=0.0, le=1.0)
    kelly_min: float = Field(default=0.01, gt=0.0, le=1.0)
    kelly_max: float = Field(default=0.25, gt=0.0, le=1.0)
    kelly_default: float = Field(default=0.05, gt=0.0, le=1.0)

    min_rebalance_threshold: float = Field(default=5.0, ge=0.0, le=100.0)
    max_allocation_change: float = Field(default=30.0, gt=0.0, le=100.0)

    high_correlation: float = Field(default=0.7, gt=0.0, le=1.0)
    medium_correlation: float = Field(default=0.4, gt=0.0, le=1.0)
    default_lookback_days: int = Field(default=30, gt=0, le=3650)

    allocation_tolerance: float = Field(default=1e-6, gt=0.0, le=1e-2)
    rounding_dp: Optional[int] = Field(default=None, ge=0, le=10)
    max_fetch_workers: int = Field(default=8, gt=0, le=64)

    @field_validator("kelly_max")
    @classmethod
    def kelly_max_must_exceed_min(cls, v, info):
        """Validate that the Kelly clamp range is not inverted."""
        if "kelly_min" in info.data and v < info.data["kelly_min"]:
            raise ValueError("kelly_max must be >= kelly_min")
        return v

    @field_validator("kelly_default")
    @classmethod
    def kelly_default_within_clamp(cls, v, info):
        """Validate that the Kelly default lies inside the clamp range."""
        low = info.data.get("kelly_min")
        high = info.data.get("kelly_max")
        if low is not None and high is not None and not low <= v <= high:
            raise ValueError("kelly_default must lie within [kelly_min, kelly_max]")
        return v

    @field_validator("medium_correlation")
    @classmethod
    def medium_below_high(cls, v, info):
        """Validate that the medium correlation bucket sits below high."""
        if "high_correlation" in info.data and v >= info.data["high_correlation"]:
            raise ValueError("medium_correlation must be less than high_correlation")
        return v


DEFAULT_PARAMETERS = LayeringParameters()


def load_parameters(config_dict: dict | None = None) -> LayeringParameters:
    """
    Load and validate layering parameters from a configuration dictionary.

    Args:
        config_dict: Optional dictionary of parameter overrides. If None,
            default values are used.

    Returns:
        Validated LayeringParameters instance.

    Raises:
        ValidationError: If any parameter values are invalid.

    Examples:
        >>> params = load_parameters({"max_allocation_change": 20.0})
        >>> params.max_allocation_change
        20.0
    """
    if config_dict is None:
        return LayeringParameters()
    return LayeringParameters(**config_dict)
