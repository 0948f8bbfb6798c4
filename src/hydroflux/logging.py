"""
Structured logging configuration for hydroflux.

Provides:
- ProcessLogger: Structured logger with context binding
- get_logger: Get a logger for a specific component
- configure_logging: Configure logging output format
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict, Optional

import structlog


class ProcessLogger:
    """
    Structured logger for process assembly and stepping.

    Example:
        log = ProcessLogger("vegetation")
        log = log.bind(process="canopy_evaporation", variant="rutter")

        log.info("process_initialized", n_connections=2)
        log.debug("rate_clamped", before=5.0, after=2.0)
    """

    def __init__(
        self,
        component: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the logger.

        Args:
            component: Component name (e.g., "vegetation", "loop")
            context: Initial context bindings
        """
        self._component = component
        self._context = context or {}
        self._logger = structlog.get_logger(f"hydroflux.{component}")
        if context:
            self._logger = self._logger.bind(**context)

    @property
    def component(self) -> str:
        return self._component

    def bind(self, **kwargs: Any) -> "ProcessLogger":
        """
        Create a new logger with additional context bindings.

        Args:
            **kwargs: Key-value pairs to bind to the logger

        Returns:
            New ProcessLogger with bound context
        """
        new_context = {**self._context, **kwargs}
        return ProcessLogger(self._component, new_context)

    def debug(self, event: str, **kwargs: Any) -> None:
        self._logger.debug(event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._logger.info(event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._logger.warning(event, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        self._logger.error(event, **kwargs)

    def exception(self, event: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._logger.exception(event, **kwargs)


def get_logger(component: str) -> ProcessLogger:
    """
    Get a logger for a specific component.

    Args:
        component: Component name (e.g., "vegetation", "model", "loop")

    Returns:
        ProcessLogger instance

    Example:
        log = get_logger("model")
        log.info("model_assembled", n_processes=4)
    """
    return ProcessLogger(component)


def configure_logging(
    level: str = "INFO",
    format: str = "console",
    output: str = "stderr",
) -> None:
    """
    Configure logging output.

    Args:
        level: Log level ("DEBUG", "INFO", "WARNING", "ERROR")
        format: Output format ("json", "console")
        output: Output destination ("stderr", "stdout", or file path)

    Example:
        # JSON output for batch runs
        configure_logging(level="INFO", format="json")

        # Pretty console output for development
        configure_logging(level="DEBUG", format="console")
    """
    level_num = getattr(logging, level.upper(), logging.INFO)

    if output == "stderr":
        handler = logging.StreamHandler(sys.stderr)
    elif output == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.FileHandler(output)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger("hydroflux")
    root_logger.setLevel(level_num)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if format == "json":
        renderer = structlog.processors.JSONRenderer()
        stamper = structlog.processors.TimeStamper(fmt="iso")
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        stamper = structlog.processors.TimeStamper(fmt="%H:%M:%S")

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            stamper,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
