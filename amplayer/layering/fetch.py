"""Parallel collaborator fetches for one layer.

Performance summaries and signal histories are fetched per strategy on a
thread pool. Every fetch completes before any allocation or correlation math
runs; there is no partial-result mode. The first collaborator exception is
re-raised unchanged after the pool shuts down.
"""

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
import logging
from typing import TypeVar

from amplayer.layering.collaborators import PerformanceSource, SignalHistorySource
from amplayer.models.layer import LookbackWindow
from amplayer.models.performance import PerformanceSnapshot
from amplayer.models.signal import SignalEvent

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")


def fetch_per_strategy(
    fetch_fn: Callable[[str], ResultT],
    strategy_ids: Sequence[str],
    max_workers: int = 8,
) -> dict[str, ResultT]:
    """Run fetch_fn for every strategy concurrently and gather all results.

    Args:
        fetch_fn: Collaborator call taking a strategy id.
        strategy_ids: Strategies to fetch for.
        max_workers: Thread cap.

    Returns:
        {strategy_id: result} for every requested strategy.

    Raises:
        Whatever fetch_fn raises, unchanged.
    """
    if not strategy_ids:
        return {}

    worker_count = max(1, min(max_workers, len(strategy_ids)))
    results: dict[str, ResultT] = {}

    with ThreadPoolExecutor(max_workers=worker_count) as executor:
        future_to_id = {
            executor.submit(fetch_fn, strategy_id): strategy_id
            for strategy_id in strategy_ids
        }

        for future in as_completed(future_to_id):
            strategy_id = future_to_id[future]
            try:
                results[strategy_id] = future.result()
            except Exception as exc:
                logger.error("Fetch for strategy %s failed: %s", strategy_id, exc)
                for pending in future_to_id:
                    pending.cancel()
                raise

    return results


def fetch_performance(
    source: PerformanceSource,
    strategy_ids: Sequence[str],
    window: LookbackWindow,
    max_workers: int = 8,
) -> dict[str, PerformanceSnapshot]:
    """Fetch performance snapshots, dropping strategies the source has no data for."""
    fetched = fetch_per_strategy(
        lambda strategy_id: source.get_performance(strategy_id, window),
        strategy_ids,
        max_workers,
    )
    missing = sorted(sid for sid, snapshot in fetched.items() if snapshot is None)
    if missing:
        logger.warning(
            "No performance data for %d strategies: %s",
            len(missing),
            ", ".join(missing),
        )
    return {sid: snapshot for sid, snapshot in fetched.items() if snapshot is not None}


def fetch_signal_history(
    source: SignalHistorySource,
    layer_id: str,
    strategy_ids: Sequence[str],
    window: LookbackWindow,
    max_workers: int = 8,
) -> dict[str, list[SignalEvent]]:
    """Fetch each strategy's signal history inside the layer."""
    return fetch_per_strategy(
        lambda strategy_id: list(
            source.get_signal_history(strategy_id, layer_id, window)
        ),
        strategy_ids,
        max_workers,
    )
