# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Process-wide engine environment.

The native engine needs one-time global initialization (default logger
severity) before the first session loads. EngineEnvironment is a lazily
constructed singleton; initialize() is safe to call from multiple threads
and only the first call has an effect.
"""

import os
import threading
from typing import Optional

from ..observability import get_logger
from .base import NativeEngine

logger = get_logger().bind(component="engine")

# Matches the engine's own default (warning)
DEFAULT_LOG_SEVERITY = 2


def _env_log_severity() -> int:
    value = os.environ.get("INFERRA_LOG_SEVERITY")
    if value is None:
        return DEFAULT_LOG_SEVERITY
    try:
        return max(0, min(4, int(value)))
    except ValueError:
        logger.warning(
            "Ignoring invalid INFERRA_LOG_SEVERITY",
            value=value,
        )
        return DEFAULT_LOG_SEVERITY


class EngineEnvironment:
    """
    Singleton holder of the native engine and its initialization flag.

    Thread Safety: construction and initialize() are protected by a lock.
    """

    _instance: Optional["EngineEnvironment"] = None
    _lock = threading.Lock()

    def __init__(self, engine: Optional[NativeEngine] = None):
        self._engine = engine
        self._initialized = False
        self._init_lock = threading.Lock()

    @classmethod
    def get(cls) -> "EngineEnvironment":
        """Get the process environment, creating it on first use."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = EngineEnvironment()
        return cls._instance

    @classmethod
    def reset(cls, engine: Optional[NativeEngine] = None) -> "EngineEnvironment":
        """Replace the process environment (for testing)."""
        with cls._lock:
            cls._instance = EngineEnvironment(engine)
            return cls._instance

    @property
    def engine(self) -> NativeEngine:
        if self._engine is None:
            with self._init_lock:
                if self._engine is None:
                    from .ort_engine import OrtEngine

                    self._engine = OrtEngine()
        return self._engine

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self, log_level: Optional[int] = None) -> bool:
        """
        Initialize the engine environment once.

        Args:
            log_level: Engine default log severity (0-4). Defaults to
                INFERRA_LOG_SEVERITY or warning.

        Returns:
            True if this call performed the initialization, False if the
            environment was already initialized.
        """
        if self._initialized:
            return False
        engine = self.engine
        with self._init_lock:
            if self._initialized:
                return False
            level = _env_log_severity() if log_level is None else log_level
            engine.initialize(level)
            self._initialized = True
        logger.debug("Engine environment ready", log_level=level)
        return True


def get_environment() -> EngineEnvironment:
    """Get the process engine environment."""
    return EngineEnvironment.get()


def get_engine() -> NativeEngine:
    """Get the process native engine."""
    return EngineEnvironment.get().engine


def initialize_environment(log_level: Optional[int] = None) -> bool:
    """
    One-time process-wide engine initialization.

    Later calls are no-ops and return False.
    """
    return EngineEnvironment.get().initialize(log_level)
