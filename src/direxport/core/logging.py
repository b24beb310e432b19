"""
Logging infrastructure for Directory Export.

Provides:
- Structured JSON logging for file output
- Rich console output for terminal
- Contextual logging with export/stage context
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from rich.console import Console


# Extra attributes copied from log records into JSON lines
CONTEXT_FIELDS = (
    "export_id",
    "stage",
    "operation",
    "attempt",
    "category",
    "delay",
    "group_id",
    "event",
    "properties",
)


def json_dumps(obj: Any) -> str:
    return orjson.dumps(obj, default=str).decode("utf-8")


# =============================================================================
# JSON Formatter for File Logging
# =============================================================================


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json_dumps(log_data)


# =============================================================================
# Rich Console Handler
# =============================================================================


class RichConsoleHandler(logging.Handler):
    """Handler that outputs to Rich console with formatting."""

    def __init__(self, console: "Console | None" = None, level: int = logging.INFO):
        super().__init__(level)
        if console is None:
            from rich.console import Console
            console = Console(stderr=True)
        self.console = console

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)

            style = {
                logging.DEBUG: "dim",
                logging.INFO: "default",
                logging.WARNING: "yellow",
                logging.ERROR: "red",
                logging.CRITICAL: "bold red",
            }.get(record.levelno, "default")

            prefix = ""
            if hasattr(record, "stage"):
                prefix = f"[cyan][{record.stage}][/cyan] "

            self.console.print(f"{prefix}[{style}]{message}[/{style}]", markup=True, highlight=False)

            if record.exc_info:
                self.console.print_exception()

        except Exception:
            self.handleError(record)


# =============================================================================
# Logger Configuration
# =============================================================================


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Set up logging for Directory Export.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Path to log file (optional)
        json_format: Use JSON format for file logs
        rich_console: Use Rich for console output

    Returns:
        Root logger for direxport
    """
    logger = logging.getLogger("direxport")
    logger.setLevel(getattr(logging, level.upper()))

    logger.handlers.clear()

    if rich_console:
        console_handler: logging.Handler = RichConsoleHandler()
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    console_handler.setLevel(getattr(logging, level.upper()))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)  # Capture all levels to file

        if json_format:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )

        logger.addHandler(file_handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (will be prefixed with 'direxport.')

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"direxport.{name}")
    return logging.getLogger("direxport")


# =============================================================================
# Contextual Logging Adapter
# =============================================================================


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that adds export/stage context to log records."""

    def __init__(
        self,
        logger: logging.Logger,
        export_id: str | None = None,
        stage: str | None = None,
    ):
        super().__init__(logger, {})
        self.export_id = export_id
        self.stage = stage

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra", {})

        if self.export_id:
            extra["export_id"] = self.export_id
        if self.stage:
            extra["stage"] = self.stage

        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(
        self,
        export_id: str | None = None,
        stage: str | None = None,
    ) -> "ContextualLogger":
        """Create a new logger with additional context."""
        return ContextualLogger(
            self.logger,
            export_id=export_id or self.export_id,
            stage=stage or self.stage,
        )


def get_contextual_logger(
    name: str | None = None,
    export_id: str | None = None,
    stage: str | None = None,
) -> ContextualLogger:
    """Get a contextual logger with export/stage context.

    Args:
        name: Logger name
        export_id: Export run correlation id
        stage: Pipeline stage name

    Returns:
        ContextualLogger instance
    """
    base_logger = get_logger(name)
    return ContextualLogger(base_logger, export_id=export_id, stage=stage)
