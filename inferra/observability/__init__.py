# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Inferra Observability Module

Components:
- InferraLogger: Structured logging with text or JSON output
- MetricsCollector: Per-session run latency and error counts
"""

from .logger import (
    BoundLogger,
    InferraLogger,
    LogEntry,
    Verbosity,
    get_logger,
    set_verbosity,
)
from .metrics import MetricsCollector, RunMetrics

__all__ = [
    "BoundLogger",
    "InferraLogger",
    "LogEntry",
    "Verbosity",
    "get_logger",
    "set_verbosity",
    "MetricsCollector",
    "RunMetrics",
]
