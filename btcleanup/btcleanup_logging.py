#!/usr/bin/python3
"""
BT Log Cleanup - Logging Infrastructure Module

This module contains all logging-related functionality including:
- Custom formatter for operation ID tracking in the log file
- Operation context management and metrics tracking
- Simplified log message formatting

Author: Devin Acosta
Version: 1.0.0
Date: 2025-08-14
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, Union

import arrow
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

LOGGER_NAME = "btcleanup"

CONSOLE_THEME = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "dry_run": "bold magenta"
})

# Thread-local storage for current operation context
_local = threading.local()

def set_current_operation_id(operation_id: str) -> None:
    """Set the current operation ID for this thread."""
    _local.operation_id = operation_id

def get_current_operation_id() -> str:
    """Get the current operation ID for this thread."""
    return getattr(_local, 'operation_id', 'session')

def new_operation_id(prefix: str) -> str:
    """Build a short correlation ID such as ``panel_logs_1432a9f``."""
    return f"{prefix}_{arrow.now().format('HHmm')}{str(uuid.uuid4())[:3]}"

class OperationIdFormatter(logging.Formatter):
    """Formatter that prefixes each file log message with the current operation ID."""

    def format(self, record):
        # Work on a copy so the console handler sees the original message
        record = logging.makeLogRecord(record.__dict__)
        record.msg = f"[{get_current_operation_id()}] {record.msg}"
        return super().format(record)

@dataclass
class OperationMetrics:
    """Tracks metrics for cleanup operations."""
    operation_id: str = ""
    files_processed: int = 0
    directories_processed: int = 0
    bytes_freed: int = 0
    errors_encountered: int = 0
    execution_time: float = 0.0

    def add_file(self, size: int = 0) -> None:
        """Add a processed file to metrics."""
        self.files_processed += 1
        self.bytes_freed += size

    def add_directory(self, size: int = 0) -> None:
        """Add a processed directory to metrics."""
        self.directories_processed += 1
        self.bytes_freed += size

    def add_error(self) -> None:
        self.errors_encountered += 1

    def to_dict(self) -> Dict[str, Union[int, float, str]]:
        """Convert metrics to dictionary for logging."""
        return {
            'id': self.operation_id,
            'files': self.files_processed,
            'dirs': self.directories_processed,
            'freed': f"{self.bytes_freed:,} bytes",
            'errors': self.errors_encountered,
            'duration': f"{self.execution_time:.2f}s"
        }

class OperationContext:
    """Context manager for tracking one cleanup section with its own correlation ID."""
    def __init__(self, operation_name: str, component: str = "system"):
        self.operation_name = operation_name
        self.component = component
        self.metrics = OperationMetrics(operation_id=new_operation_id(operation_name))
        self.start_time = time.time()
        self.previous_operation_id = None

    def __enter__(self):
        log = logging.getLogger(LOGGER_NAME)

        self.previous_operation_id = get_current_operation_id()
        set_current_operation_id(self.metrics.operation_id)

        log.info(f"Starting {self.operation_name} ({self.component})")
        return self.metrics

    def __exit__(self, exc_type, exc_val, exc_tb):
        log = logging.getLogger(LOGGER_NAME)

        self.metrics.execution_time = time.time() - self.start_time
        if exc_type is None:
            log.info(f"Completed - {self.metrics.to_dict()}")
        else:
            self.metrics.add_error()
            log.error(f"{self.operation_name} failed (error: {exc_type.__name__}: {exc_val}) {self.metrics.to_dict()}")

        set_current_operation_id(self.previous_operation_id or 'session')

class LogHelper:
    """Simplified logging helper - operation ID provides context, keep messages clean."""

    @staticmethod
    def _extra(kwargs) -> str:
        return " ".join(f"({k}: {v})" for k, v in kwargs.items() if v is not None)

    @staticmethod
    def action(details: str, **kwargs) -> str:
        """Format action log messages: Details (extra info)"""
        return f"{details} {LogHelper._extra(kwargs)}".strip()

    # System and configuration messages share the action format
    system = action
    config = action

    @staticmethod
    def dry_run(details: str, **kwargs) -> str:
        """Format dry-run log messages: Would details (extra info)"""
        return f"Would {details} {LogHelper._extra(kwargs)}".strip()

    @staticmethod
    def performance(**kwargs) -> str:
        """Format performance log messages: key: value pairs"""
        extra_info = " ".join(f"{k}: {v}" for k, v in kwargs.items() if v is not None)
        return f"Completed - {extra_info}"

    @staticmethod
    def error_with_context(path: str, error: Exception, **kwargs) -> str:
        """Format error messages with context."""
        return f"Failed to process {path}: {type(error).__name__}: {error} {LogHelper._extra(kwargs)}".strip()

def setup_logging(log_file_path: str, verbose: bool = False) -> tuple:
    """
    Set up logging with dual approach: Rich console + Standard file

    The Rich handler writes to stderr so the result tables on stdout are not
    interleaved with log lines. Without ``verbose`` only warnings reach the
    terminal; the log file always receives INFO and above.

    Returns:
        tuple: (console, logger_helper, global_metrics)
    """
    console = Console(theme=CONSOLE_THEME, highlight=False)

    logger_helper = LogHelper()
    global_metrics = OperationMetrics(operation_id=new_operation_id("session"))

    console_handler = RichHandler(
        console=Console(theme=CONSOLE_THEME, stderr=True, highlight=False),
        rich_tracebacks=True,
        show_time=True,
        show_path=False,
        markup=False,
        log_time_format="[%H:%M:%S]",
        omit_repeated_times=False,
        show_level=False,
        keywords=[]
    )
    console_handler.setFormatter(logging.Formatter('%(levelname)s %(message)s'))
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)

    file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
    file_handler.setFormatter(
        OperationIdFormatter(
            fmt='%(asctime)s %(levelname)-8s : %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    )

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=[file_handler, console_handler],
        force=True
    )

    return console, logger_helper, global_metrics
