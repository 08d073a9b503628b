"""Signal correlation analysis for strategy layers.

This module measures how similarly a layer's strategies trade. Each
strategy's raw signal events are reduced to a daily series (BUY=+1,
SELL=-1, HOLD omitted, same-day signals averaged, days keyed by UTC
calendar date). Every unordered pair is then correlated with Pearson's r
over the dates present in BOTH series: an explicit inner join on the date
keys, never positional alignment of two arrays of different length.

Fewer than two common dates, or a series with no variance over the common
dates, yields a correlation of 0.0. This is a documented low-confidence
default (see PairCorrelation.overlap), not an error.
"""
import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Optional

import numpy as np
import pandas as pd

from amplayer.config.parameters import DEFAULT_PARAMETERS, LayeringParameters
from amplayer.layering.collaborators import LayerConfigSource, SignalHistorySource
from amplayer.layering.diversification import (
    aggregate_correlations,
    calculate_diversification_score,
    classify_correlation,
)
from amplayer.layering.errors import InsufficientMembersError
from amplayer.layering.fetch import fetch_signal_history
from amplayer.models.correlation import CorrelationReport, PairCorrelation
from amplayer.models.enums import SignalAction
from amplayer.models.layer import LookbackWindow
from amplayer.models.signal import SignalEvent

logger = logging.getLogger(__name__)


def build_daily_series(events: Iterable[SignalEvent]) -> pd.Series:
    """Reduce signal events to one averaged value per UTC calendar day.

    Args:
        events: Signal events for a single strategy

    Returns:
        Float series indexed by date, sorted ascending; empty if the
        strategy emitted no BUY/SELL signals
    """
    rows = [
        (event.bucket, float(event.value))
        for event in events
        if event.action is not SignalAction.HOLD
    ]
    if not rows:
        return pd.Series(dtype=float, name="signal")

    frame = pd.DataFrame(rows, columns=["day", "signal"])
    return frame.groupby("day")["signal"].mean().sort_index()


def pearson_on_common_dates(
    series_a: pd.Series, series_b: pd.Series
) -> tuple[float, int]:
    """Correlate two date-keyed series over their shared dates only.

    Args:
        series_a: First daily series
        series_b: Second daily series

    Returns:
        (correlation, number of common dates); correlation is 0.0 when fewer
        than two dates are shared or either side has zero variance
    """
    common = series_a.index.intersection(series_b.index)
    overlap = len(common)
    if overlap < 2:
        return 0.0, overlap

    values_a = series_a.loc[common].to_numpy(dtype=np.float64)
    values_b = series_b.loc[common].to_numpy(dtype=np.float64)

    # Handle edge case of zero variance
    if np.std(values_a) == 0 or np.std(values_b) == 0:
        return 0.0, overlap

    correlation = float(np.corrcoef(values_a, values_b)[0, 1])
    return max(-1.0, min(1.0, correlation)), overlap


class CorrelationAnalyzer:
    """Computes pairwise signal correlation and a diversification score.

    Holds collaborator handles only; no state survives between calls.

    Attributes:
        config_source: Layer configuration collaborator
        history_source: Signal history collaborator
        params: Tuning parameters (strength thresholds, lookback, workers)
    """

    def __init__(
        self,
        config_source: LayerConfigSource,
        history_source: SignalHistorySource,
        params: LayeringParameters = DEFAULT_PARAMETERS,
    ):
        """Initialize correlation analyzer.

        Args:
            config_source: Provides layer configuration
            history_source: Provides per-strategy signal history
            params: Tuning parameters
        """
        self.config_source = config_source
        self.history_source = history_source
        self.params = params

    def analyze(
        self,
        layer_id: str,
        lookback_days: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> CorrelationReport:
        """Fetch signal history for a layer and analyze its correlation.

        Args:
            layer_id: Layer to analyze
            lookback_days: History window (defaults to params.default_lookback_days)
            as_of: Window end (defaults to now, UTC)

        Returns:
            CorrelationReport over the layer's enabled strategies

        Raises:
            InsufficientMembersError: If fewer than 2 members are enabled
        """
        layer = self.config_source.get_layer_config(layer_id)
        strategy_ids = [member.strategy_id for member in layer.enabled_members]
        self._require_pairs(layer_id, strategy_ids)

        window = LookbackWindow.trailing(
            lookback_days or self.params.default_lookback_days, as_of
        )
        history = fetch_signal_history(
            self.history_source,
            layer_id,
            strategy_ids,
            window,
            max_workers=self.params.max_fetch_workers,
        )
        return self.analyze_history(layer_id, strategy_ids, history)

    def analyze_history(
        self,
        layer_id: str,
        strategy_ids: Sequence[str],
        history: Mapping[str, Iterable[SignalEvent]],
    ) -> CorrelationReport:
        """Analyze already-fetched signal history. Pure computation.

        Args:
            layer_id: Layer being analyzed
            strategy_ids: Strategies to include, in report order
            history: Signal events keyed by strategy id (missing keys are
                treated as empty history)

        Returns:
            CorrelationReport

        Raises:
            InsufficientMembersError: If fewer than 2 strategies are given
        """
        self._require_pairs(layer_id, strategy_ids)

        series = {
            strategy_id: build_daily_series(history.get(strategy_id, ()))
            for strategy_id in strategy_ids
        }
        for strategy_id, daily in series.items():
            if len(daily) < 2:
                logger.warning(
                    "Strategy %s has %d signal days; its correlations are low confidence",
                    strategy_id,
                    len(daily),
                )

        pairs = []
        for i, first in enumerate(strategy_ids):
            for second in strategy_ids[i + 1 :]:
                correlation, overlap = pearson_on_common_dates(
                    series[first], series[second]
                )
                pairs.append(
                    PairCorrelation(
                        strategy1=first,
                        strategy2=second,
                        correlation=correlation,
                        strength=classify_correlation(correlation, self.params),
                        overlap=overlap,
                    )
                )

        avg_correlation, max_correlation = aggregate_correlations(
            [pair.correlation for pair in pairs]
        )
        score = calculate_diversification_score(avg_correlation, max_correlation)

        logger.info(
            "Correlation for layer %s: %d pairs, avg=%.3f, max=%.3f, diversification=%d",
            layer_id,
            len(pairs),
            avg_correlation,
            max_correlation,
            score,
        )

        return CorrelationReport(
            layer_id=layer_id,
            strategy_ids=list(strategy_ids),
            pairs=pairs,
            avg_correlation=avg_correlation,
            max_correlation=max_correlation,
            diversification_score=score,
        )

    @staticmethod
    def _require_pairs(layer_id: str, strategy_ids: Sequence[str]) -> None:
        """Raise InsufficientMembersError unless at least two strategies exist."""
        if len(strategy_ids) < 2:
            raise InsufficientMembersError(
                "Need at least 2 enabled strategies to calculate correlation",
                context={"layer_id": layer_id, "enabled": len(strategy_ids)},
            )
