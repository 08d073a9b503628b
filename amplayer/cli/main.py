import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from rich.console import Console

from amplayer.cli.commands import (
    configure_allocate_parser,
    configure_correlation_parser,
    configure_rebalance_parser,
    configure_resolve_parser,
    run_allocate_command,
    run_correlation_command,
    run_rebalance_command,
    run_resolve_command,
)
from amplayer.cli.logging_setup import setup_logging
from amplayer.config.parameters import load_parameters
from amplayer.layering.errors import LayeringError

logger = logging.getLogger(__name__)

COMMANDS = {
    "allocate": run_allocate_command,
    "correlation": run_correlation_command,
    "rebalance": run_rebalance_command,
    "resolve": run_resolve_command,
}


def main(args: Optional[list[str]] = None) -> int:
    """
    Main entry point for the 'amplayer' CLI.
    """
    parser = argparse.ArgumentParser(
        description="amplayer: capital allocation and signal coordination for strategy layers"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Optional log file path",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Write the log file as JSON lines",
    )
    parser.add_argument(
        "--max-change",
        type=float,
        default=None,
        help="Per-strategy rebalance cap in percent (default: 30)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Rebalance threshold in percent (default: 5)",
    )
    subparsers = parser.add_subparsers(
        dest="command", required=True, help="Subcommands"
    )

    # -------------------------------------------------------------------------
    # Subcommand: allocate
    # -------------------------------------------------------------------------
    allocate_parser = subparsers.add_parser(
        "allocate",
        help="Split capital across a layer's strategies",
        description="Allocate capital across enabled strategies under the layer's policy.",
    )
    configure_allocate_parser(allocate_parser)

    # -------------------------------------------------------------------------
    # Subcommand: correlation
    # -------------------------------------------------------------------------
    correlation_parser = subparsers.add_parser(
        "correlation",
        help="Report pairwise signal correlation",
        description="Correlate daily signal series and score layer diversification.",
    )
    configure_correlation_parser(correlation_parser)

    # -------------------------------------------------------------------------
    # Subcommand: rebalance
    # -------------------------------------------------------------------------
    rebalance_parser = subparsers.add_parser(
        "rebalance",
        help="Plan (and optionally commit) a rebalance",
        description="Diff current against target allocation with bounded changes.",
    )
    configure_rebalance_parser(rebalance_parser)

    # -------------------------------------------------------------------------
    # Subcommand: resolve
    # -------------------------------------------------------------------------
    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Resolve conflicting signals",
        description="Resolve simultaneous signals per symbol and UTC day.",
    )
    configure_resolve_parser(resolve_parser)

    # -------------------------------------------------------------------------
    # Parse & Execute
    # -------------------------------------------------------------------------
    parsed_args = parser.parse_args(args)
    setup_logging(
        level=parsed_args.log_level,
        log_file=parsed_args.log_file,
        use_json=parsed_args.log_json,
    )

    overrides = {}
    if parsed_args.max_change is not None:
        overrides["max_allocation_change"] = parsed_args.max_change
    if parsed_args.threshold is not None:
        overrides["min_rebalance_threshold"] = parsed_args.threshold

    try:
        parsed_args.params = load_parameters(overrides or None)
        return COMMANDS[parsed_args.command](parsed_args)
    except (LayeringError, ValidationError) as exc:
        logger.error(
            "%s failed: %s",
            parsed_args.command,
            exc,
            extra={"context": getattr(exc, "context", {})},
        )
        Console(stderr=True).print(f"✗ {exc}", style="red", markup=False)
        return 1


if __name__ == "__main__":
    sys.exit(main())
