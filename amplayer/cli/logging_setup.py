"""
Logging configuration for the amplayer CLI.

Command results go to stdout, so every log handler writes to stderr or to a
file. Terminal output uses Rich when stderr is interactive; file logs can be
plain text or one JSON object per line.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

TEXT_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = "WARNING",
    log_file: Path | None = None,
    use_json: bool = False,
) -> None:
    """
    Configure root logging for one CLI invocation.

    Args:
        level: Logging level name ("DEBUG", "INFO", "WARNING", "ERROR").
            Unknown names fall back to WARNING.
        log_file: Optional path to append logs to.
        use_json: If True, write the file log as JSON lines.

    Examples:
        >>> from pathlib import Path
        >>> setup_logging(level="DEBUG", log_file=Path("logs/amplayer.log"))
    """
    numeric_level = getattr(logging, level.upper(), logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    if sys.stderr.isatty():
        # layer and strategy ids are user data; never interpret them as markup
        terminal_handler = RichHandler(
            console=Console(stderr=True), show_path=False, markup=False
        )
        terminal_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        terminal_handler = logging.StreamHandler(sys.stderr)
        terminal_handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(terminal_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(
            JSONFormatter() if use_json else logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)
        )
        root_logger.addHandler(file_handler)

    root_logger.debug(
        "Logging configured: level=%s, file=%s, json=%s",
        level,
        log_file if log_file else "None",
        use_json,
    )


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Records logged with ``extra={"context": {...}}`` (the CLI does this for
    LayeringError context) carry that dictionary under "context".
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)
