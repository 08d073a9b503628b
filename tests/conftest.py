"""
Pytest configuration and global fixtures.

This module provides shared test fixtures used across the test suite,
including parameter configurations, sample layers, signal factories and a
populated in-memory store.
"""

import random
from datetime import UTC, datetime

import numpy as np
import pytest

from amplayer.config.parameters import LayeringParameters
from amplayer.layering.memory_store import InMemoryLayerStore
from amplayer.models.enums import CapitalPolicy, ConflictPolicy, SignalAction
from amplayer.models.layer import Layer, LayerMember
from amplayer.models.signal import SignalEvent


SEED = 42


def _apply_global_seed():
    """Apply global deterministic seed for tests.

    Ensures repeatable outcomes for any test relying on random or numpy generation.
    """
    random.seed(SEED)
    np.random.seed(SEED)


_apply_global_seed()


@pytest.fixture()
def default_parameters():
    """
    Provide default layering parameters for testing.

    Examples:
        >>> def test_something(default_parameters):
        ...     assert default_parameters.max_allocation_change == 30.0
    """
    return LayeringParameters()


@pytest.fixture()
def abc_layer():
    """
    Provide the reference three-strategy layer.

    Strategies A, B, C with priorities 80/50/20 and weights 0.5/0.3/0.2,
    weighted capital and priority conflict resolution.
    """
    return Layer(
        id="L1",
        owner="user-1",
        name="Reference layer",
        capital_policy=CapitalPolicy.WEIGHTED,
        conflict_policy=ConflictPolicy.PRIORITY,
        members=[
            LayerMember(strategy_id="A", priority=80, weight=0.5),
            LayerMember(strategy_id="B", priority=50, weight=0.3),
            LayerMember(strategy_id="C", priority=20, weight=0.2),
        ],
    )


@pytest.fixture()
def make_signal():
    """
    Provide a SignalEvent factory.

    The factory takes strategy id, action and either a day of January 2025
    or an explicit timestamp; symbol defaults to AAPL.
    """

    def _make(
        strategy_id: str,
        action: SignalAction | str,
        day: int = 2,
        symbol: str = "AAPL",
        hour: int = 14,
        minute: int = 30,
        timestamp: datetime | None = None,
    ) -> SignalEvent:
        return SignalEvent(
            strategy_id=strategy_id,
            symbol=symbol,
            action=SignalAction(action),
            timestamp=timestamp or datetime(2025, 1, day, hour, minute, tzinfo=UTC),
        )

    return _make


@pytest.fixture()
def abc_store(abc_layer):
    """Provide an in-memory store holding the reference layer."""
    store = InMemoryLayerStore()
    store.save_layer(abc_layer)
    return store
