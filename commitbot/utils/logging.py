import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import structlog


def setup_logging(log_level: str = "INFO", log_to_file: bool = True) -> None:
    """Set up logging configuration for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to files in addition to console
    """
    level = getattr(logging, log_level.upper())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.set_exc_info,
            (
                structlog.processors.JSONRenderer()
                if log_to_file
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    if log_to_file:
        logs_dir = Path("logs")
        logs_dir.mkdir(exist_ok=True)

        app_handler = logging.handlers.RotatingFileHandler(
            logs_dir / "app.log", maxBytes=10 * 1024 * 1024, backupCount=5  # 10MB
        )
        app_handler.setLevel(logging.INFO)
        app_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
            )
        )
        root_logger.addHandler(app_handler)

        # Error-only log file for invariant violations and storage failures
        error_handler = logging.handlers.RotatingFileHandler(
            logs_dir / "errors.log", maxBytes=5 * 1024 * 1024, backupCount=10  # 5MB
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s - %(exc_info)s"
            )
        )
        root_logger.addHandler(error_handler)


def get_operation_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Structured logger for core operations (recaps, verifications)."""
    return structlog.get_logger(name or "commitbot.operations")


class OperationLogContext:
    """Context manager logging START / success / failure of an operation.

    Usage:
        with OperationLogContext("recap", cycle_type="daily") as op:
            ...
            op.add(total=12)
    """

    def __init__(self, operation: str, **context: Any) -> None:
        self.operation = operation
        self.context: Dict[str, Any] = dict(context)
        self.logger = get_operation_logger()
        self.start_time: Optional[datetime] = None

    def add(self, **details: Any) -> None:
        """Attach result details reported on exit."""
        self.context.update(details)

    def __enter__(self) -> "OperationLogContext":
        self.start_time = datetime.now()
        self.logger.info(
            f"{self.operation} - START",
            operation=self.operation,
            start_time=self.start_time.isoformat(),
            **self.context,
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        elapsed = (datetime.now() - self.start_time).total_seconds()
        if exc_type is not None:
            self.logger.error(
                f"{self.operation} - FAILED",
                operation=self.operation,
                error_type=exc_type.__name__,
                error_message=str(exc_val),
                processing_time_seconds=elapsed,
                exc_info=(exc_type, exc_val, exc_tb),
                **self.context,
            )
        else:
            self.logger.info(
                f"{self.operation} - DONE",
                operation=self.operation,
                processing_time_seconds=elapsed,
                **self.context,
            )
