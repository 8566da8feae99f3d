# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Structured Logger for Inferra

One process-wide logger writes text or JSON lines. Entries name the
component that produced them (session, marshal, engine, backends) and, for
session work, the session and operation.

Example:
    from inferra.observability import get_logger, Verbosity

    get_logger().set_verbosity(Verbosity.DEBUG)
    log = get_logger().bind(component="session", session_id="session-1")
    log.info("Model loaded", operation="load", inputs=["x"])
"""

import json
import os
import sys
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Callable, Optional, TextIO

VERBOSITY_ENV = "INFERRA_VERBOSITY"


class Verbosity(IntEnum):
    """Verbosity levels; an entry is written if its level <= the current one."""

    SILENT = 0
    ERROR = 1
    WARNING = 2
    INFO = 3
    DEBUG = 4


@dataclass
class LogEntry:
    """
    One log record.

    Attributes:
        level: Level name, e.g. "INFO"
        message: Human-readable message
        timestamp: ISO-8601 creation time
        component: Producing component (session, marshal, engine, backends)
        session_id: Session the record belongs to, if any
        operation: Session operation (load, run, dispose, end_profiling)
        duration_ms: Elapsed time of the operation
        extra: Any other keyword context
    """

    level: str
    message: str
    timestamp: str
    component: str = "inferra"
    session_id: Optional[str] = None
    operation: Optional[str] = None
    duration_ms: Optional[float] = None
    extra: dict = field(default_factory=dict)

    def to_json(self) -> str:
        record = {key: value for key, value in asdict(self).items() if value is not None}
        if not record.get("extra"):
            record.pop("extra", None)
        return json.dumps(record, default=str)

    def to_text(self) -> str:
        prefix = f"[{self.level}] [{self.component}]"
        if self.session_id:
            prefix += f" [{self.session_id}]"
        words = [prefix]
        if self.operation:
            words.append(f"{self.operation}:")
        words.append(self.message)
        if self.duration_ms is not None:
            words.append(f"({self.duration_ms:.2f}ms)")
        words.extend(f"{key}={value}" for key, value in self.extra.items())
        return " ".join(words)


def _env_verbosity() -> Verbosity:
    value = os.environ.get(VERBOSITY_ENV)
    if value is None:
        return Verbosity.WARNING
    try:
        return Verbosity(int(value))
    except ValueError:
        return Verbosity.WARNING


class InferraLogger:
    """
    Process-wide structured logger.

    Starts at WARNING unless INFERRA_VERBOSITY (0-4) says otherwise. Writes
    are serialized by a lock so lines from concurrent sessions never
    interleave.
    """

    _instance: Optional["InferraLogger"] = None
    _instance_lock = threading.Lock()

    def __init__(self):
        self._verbosity = _env_verbosity()
        self._output: TextIO = sys.stderr
        self._json_format = False
        self._handlers: list[Callable[[LogEntry], None]] = []
        self._write_lock = threading.Lock()

    @classmethod
    def get(cls) -> "InferraLogger":
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = InferraLogger()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the process logger so the next get() builds a fresh one (for testing)."""
        with cls._instance_lock:
            cls._instance = None

    # configuration

    def set_verbosity(self, level: int) -> None:
        """
        Args:
            level: A Verbosity or an int; ints are clamped into 0-4.
        """
        if not isinstance(level, Verbosity):
            level = Verbosity(max(0, min(4, int(level))))
        self._verbosity = level

    def get_verbosity(self) -> Verbosity:
        return self._verbosity

    def is_enabled(self, level: Verbosity) -> bool:
        return level <= self._verbosity

    def set_json_format(self, enabled: bool) -> None:
        self._json_format = enabled

    def set_output(self, output: TextIO) -> None:
        self._output = output

    def add_handler(self, handler: Callable[[LogEntry], None]) -> None:
        """Call ``handler`` with every entry that passes the verbosity check."""
        self._handlers.append(handler)

    def remove_handler(self, handler: Callable[[LogEntry], None]) -> None:
        self._handlers.remove(handler)

    def bind(self, **context) -> "BoundLogger":
        """Logger that adds ``context`` (component, session_id, ...) to every entry."""
        return BoundLogger(context)

    # emission

    def log(self, level: Verbosity, message: str, **context) -> None:
        if not self.is_enabled(level):
            return
        entry = LogEntry(
            level=level.name,
            message=message,
            timestamp=datetime.now().isoformat(),
            component=context.pop("component", "inferra"),
            session_id=context.pop("session_id", None),
            operation=context.pop("operation", None),
            duration_ms=context.pop("duration_ms", None),
            extra=context,
        )
        line = entry.to_json() if self._json_format else entry.to_text()
        with self._write_lock:
            self._output.write(line + "\n")
            self._output.flush()
        for handler in list(self._handlers):
            handler(entry)

    def debug(self, message: str, **context) -> None:
        self.log(Verbosity.DEBUG, message, **context)

    def info(self, message: str, **context) -> None:
        self.log(Verbosity.INFO, message, **context)

    def warning(self, message: str, **context) -> None:
        self.log(Verbosity.WARNING, message, **context)

    def error(self, message: str, **context) -> None:
        self.log(Verbosity.ERROR, message, **context)


class BoundLogger:
    """
    Context-carrying view of the process logger.

    Looks the process logger up on every call, so it follows
    InferraLogger.reset() and verbosity changes.
    """

    def __init__(self, context: dict):
        self._context = dict(context)

    def bind(self, **context) -> "BoundLogger":
        return BoundLogger({**self._context, **context})

    def _log(self, level: Verbosity, message: str, context: dict) -> None:
        InferraLogger.get().log(level, message, **{**self._context, **context})

    def debug(self, message: str, **context) -> None:
        self._log(Verbosity.DEBUG, message, context)

    def info(self, message: str, **context) -> None:
        self._log(Verbosity.INFO, message, context)

    def warning(self, message: str, **context) -> None:
        self._log(Verbosity.WARNING, message, context)

    def error(self, message: str, **context) -> None:
        self._log(Verbosity.ERROR, message, context)


def get_logger() -> InferraLogger:
    """Get the process logger."""
    return InferraLogger.get()


def set_verbosity(level: int) -> None:
    """
    Set the process-wide verbosity.

    Args:
        level: 0=SILENT, 1=ERROR, 2=WARNING, 3=INFO, 4=DEBUG
    """
    InferraLogger.get().set_verbosity(level)
