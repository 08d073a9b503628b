"""Subcommands of the amplayer CLI.

Each subcommand has a ``configure_*_parser`` that adds its arguments and a
``run_*_command`` that loads the scenario, runs one coordinator operation
and prints the result as a Rich table (or JSON with ``--json``).
"""
import argparse
import json
import logging
from pathlib import Path

from rich.console import Console
from rich.table import Table

from amplayer.cli.scenario import Scenario, load_scenario
from amplayer.layering.coordinator import LayerCoordinator
from amplayer.layering.errors import InputError
from amplayer.models.enums import CapitalPolicy

logger = logging.getLogger(__name__)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("scenario", type=Path, help="Path to a JSON scenario file")
    parser.add_argument(
        "--lookback-days",
        type=int,
        default=None,
        help="History window in days (default: 30)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON instead of a table",
    )


def _coordinator(scenario: Scenario, args: argparse.Namespace) -> LayerCoordinator:
    return LayerCoordinator.from_store(scenario.store, args.params)


# -----------------------------------------------------------------------------
# allocate
# -----------------------------------------------------------------------------


def configure_allocate_parser(parser: argparse.ArgumentParser) -> None:
    """Add arguments for the allocate subcommand."""
    _add_common_arguments(parser)
    parser.add_argument(
        "--capital",
        type=float,
        default=None,
        help="Capital to allocate (default: scenario total_capital)",
    )
    parser.add_argument(
        "--policy",
        type=str,
        choices=[policy.value for policy in CapitalPolicy],
        default=None,
        help="Override the layer's capital policy",
    )


def run_allocate_command(args: argparse.Namespace) -> int:
    """Allocate the scenario's capital across its enabled strategies."""
    scenario = load_scenario(args.scenario)
    capital = args.capital if args.capital is not None else scenario.total_capital
    if capital is None:
        raise InputError("No capital given; pass --capital or set total_capital")

    allocation = _coordinator(scenario, args).allocate(
        scenario.layer_id,
        capital,
        lookback_days=args.lookback_days,
        as_of=scenario.as_of,
        policy=CapitalPolicy(args.policy) if args.policy else None,
    )

    if args.json:
        print(allocation.model_dump_json(indent=2))
        return 0

    table = Table(title=f"Allocation: {allocation.layer_id} ({allocation.policy.value})")
    table.add_column("Strategy", style="cyan")
    table.add_column("Allocated", justify="right", style="green")
    table.add_column("Fraction", justify="right")
    table.add_column("Rationale")
    for result in allocation.allocations:
        table.add_row(
            result.strategy_id,
            f"{result.allocated:,.2f}",
            f"{result.fraction:.2%}",
            result.rationale,
        )
    Console().print(table)
    return 0


# -----------------------------------------------------------------------------
# correlation
# -----------------------------------------------------------------------------


def configure_correlation_parser(parser: argparse.ArgumentParser) -> None:
    """Add arguments for the correlation subcommand."""
    _add_common_arguments(parser)


def run_correlation_command(args: argparse.Namespace) -> int:
    """Report pairwise signal correlation for the scenario layer."""
    scenario = load_scenario(args.scenario)
    report = _coordinator(scenario, args).analyze_correlation(
        scenario.layer_id, lookback_days=args.lookback_days, as_of=scenario.as_of
    )

    if args.json:
        print(report.model_dump_json(indent=2))
        return 0

    table = Table(title=f"Signal correlation: {report.layer_id}")
    table.add_column("Pair", style="cyan")
    table.add_column("Correlation", justify="right")
    table.add_column("Strength")
    table.add_column("Common days", justify="right")
    for pair in report.pairs:
        table.add_row(
            f"{pair.strategy1} / {pair.strategy2}",
            f"{pair.correlation:+.3f}",
            pair.strength.value,
            str(pair.overlap),
        )

    console = Console()
    console.print(table)
    console.print(
        f"avg |r| {report.avg_correlation:.3f}, max |r| {report.max_correlation:.3f}, "
        f"diversification score [bold]{report.diversification_score}[/bold]/100"
    )
    return 0


# -----------------------------------------------------------------------------
# rebalance
# -----------------------------------------------------------------------------


def configure_rebalance_parser(parser: argparse.ArgumentParser) -> None:
    """Add arguments for the rebalance subcommand."""
    _add_common_arguments(parser)
    parser.add_argument(
        "--capital",
        type=float,
        default=None,
        help="Capital pool to target (default: sum of current allocation)",
    )
    parser.add_argument(
        "--commit",
        action="store_true",
        help="Apply the plan if it recommends rebalancing",
    )


def run_rebalance_command(args: argparse.Namespace) -> int:
    """Plan, and optionally commit, a rebalance of the scenario layer."""
    scenario = load_scenario(args.scenario)
    coordinator = _coordinator(scenario, args)
    plan = coordinator.plan_rebalance(
        scenario.layer_id,
        lookback_days=args.lookback_days,
        total_capital=args.capital,
        as_of=scenario.as_of,
    )
    committed = coordinator.commit_rebalance(plan) if args.commit else False

    if args.json:
        payload = json.loads(plan.model_dump_json())
        payload["committed"] = committed
        print(json.dumps(payload, indent=2))
        return 0

    table = Table(title=f"Rebalance plan: {plan.layer_id}")
    table.add_column("Strategy", style="cyan")
    table.add_column("Current", justify="right")
    table.add_column("Target", justify="right")
    table.add_column("Proposed", justify="right", style="green")
    table.add_column("Change", justify="right")
    table.add_column("Reason")
    for change in plan.changes:
        table.add_row(
            change.strategy_id,
            f"{change.current:,.2f}",
            f"{change.target:,.2f}",
            f"{change.proposed:,.2f}",
            f"{change.change_percent:+.1f}%",
            change.reason,
        )

    console = Console()
    console.print(table)
    verdict = "[green]rebalance[/green]" if plan.should_rebalance else "[yellow]hold[/yellow]"
    console.print(f"Largest change {plan.total_change_percent:.1f}%: {verdict}")
    if plan.unallocated:
        console.print(f"Unallocated after caps: {plan.unallocated:,.2f}")
    if args.commit:
        console.print("Committed" if committed else "Nothing written")
    return 0


# -----------------------------------------------------------------------------
# resolve
# -----------------------------------------------------------------------------


def configure_resolve_parser(parser: argparse.ArgumentParser) -> None:
    """Add arguments for the resolve subcommand."""
    _add_common_arguments(parser)


def run_resolve_command(args: argparse.Namespace) -> int:
    """Resolve the scenario's signals per symbol and UTC day."""
    scenario = load_scenario(args.scenario)
    resolutions = _coordinator(scenario, args).coordinate_signals(
        scenario.layer_id, scenario.signals
    )

    if args.json:
        print(json.dumps([json.loads(r.model_dump_json()) for r in resolutions], indent=2))
        return 0

    console = Console()
    if not resolutions:
        console.print("[yellow]No actionable signals[/yellow]")
        return 0

    table = Table(title=f"Resolved signals: {scenario.layer_id}")
    table.add_column("Day", style="cyan")
    table.add_column("Symbol", style="cyan")
    table.add_column("Action", style="green")
    table.add_column("Conflict")
    table.add_column("Reasoning")
    for resolution in resolutions:
        table.add_row(
            str(resolution.bucket),
            resolution.symbol,
            resolution.action.value,
            "yes" if resolution.conflicts else "no",
            resolution.reasoning,
        )
    console.print(table)
    return 0
