"""Scenario files for the amplayer CLI.

A scenario is a JSON document describing one layer and the collaborator data
around it. Only ``layer`` is required::

    {
      "layer": {"id": "growth", "capital_policy": "weighted",
                "conflict_policy": "priority",
                "members": [{"strategy_id": "A", "priority": 80, "weight": 0.5}]},
      "total_capital": 10000,
      "capital_base": 100000,
      "as_of": "2025-02-01T00:00:00+00:00",
      "current_allocation": {"A": 5000},
      "unallocated": 0,
      "performance": {"A": [{"day": "2025-01-02", "pnl": 120.0, "trades": 3}]},
      "signals": [{"strategy_id": "A", "symbol": "AAPL", "action": "BUY",
                   "timestamp": "2025-01-02T14:30:00+00:00"}]
    }

Loading builds an InMemoryLayerStore populated with that data.
"""
import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from amplayer.layering.errors import InputError
from amplayer.layering.memory_store import InMemoryLayerStore
from amplayer.models.layer import Layer
from amplayer.models.performance import DailyPerformanceRecord
from amplayer.models.signal import SignalEvent


@dataclass
class Scenario:
    """A loaded scenario.

    Attributes:
        store: Store holding the layer and its collaborator data
        layer_id: Identifier of the scenario layer
        total_capital: Capital to allocate, if given
        as_of: End of lookback windows, if given
        signals: Every signal in the file, in file order
    """

    store: InMemoryLayerStore
    layer_id: str
    total_capital: Optional[float]
    as_of: Optional[datetime]
    signals: list[SignalEvent]


def _parse_signal(raw: dict) -> SignalEvent:
    return SignalEvent(
        strategy_id=raw["strategy_id"],
        symbol=raw["symbol"],
        action=raw["action"],
        timestamp=datetime.fromisoformat(raw["timestamp"]),
    )


def load_scenario(path: Path) -> Scenario:
    """Read a scenario file into a populated in-memory store.

    Args:
        path: JSON scenario file

    Returns:
        Scenario

    Raises:
        InputError: If the file cannot be read or any record is malformed
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise InputError("Cannot read scenario file", context={"path": str(path)}) from exc

    try:
        layer = Layer.model_validate(data["layer"])
        store = InMemoryLayerStore(capital_base=float(data.get("capital_base", 100_000.0)))
        store.save_layer(layer)

        current = data.get("current_allocation")
        if current:
            store.set_allocation(
                layer.id,
                {sid: float(v) for sid, v in current.items()},
                unallocated=float(data.get("unallocated", 0.0)),
            )

        for strategy_id, rows in data.get("performance", {}).items():
            store.record_performance(
                strategy_id, [DailyPerformanceRecord.model_validate(row) for row in rows]
            )

        signals = [_parse_signal(row) for row in data.get("signals", [])]
        store.record_signals(layer.id, signals)

        as_of = datetime.fromisoformat(data["as_of"]) if data.get("as_of") else None
        total_capital = data.get("total_capital")
        if total_capital is not None:
            total_capital = float(total_capital)
    except (KeyError, TypeError, ValueError, ValidationError) as exc:
        raise InputError(
            "Malformed scenario file", context={"path": str(path), "error": exc}
        ) from exc

    if as_of is not None and as_of.tzinfo is None:
        raise InputError(
            "as_of must carry a UTC offset",
            context={"path": str(path), "as_of": data["as_of"]},
        )

    return Scenario(
        store=store,
        layer_id=layer.id,
        total_capital=total_capital,
        as_of=as_of,
        signals=signals,
    )
