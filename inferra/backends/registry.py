# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Execution Provider Registry

Capability table of the execution providers Inferra knows how to select.
The table is static; which entries are reported as supported depends on
the providers the installed engine build actually ships.

Features:
- Backend name <-> engine provider name resolution ("cuda" -> "CUDAExecutionProvider")
- "bundled" flag: provider ships inside the engine package, as opposed to
  needing an external runtime (CUDA toolkit, TensorRT)
- Thread-safe singleton registry
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..errors import InvalidArgumentError

logger = logging.getLogger("inferra.backends.registry")


@dataclass(frozen=True)
class BackendSpec:
    """
    One execution provider known to the registry.

    Attributes:
        name: Short backend name used in session options ("cuda")
        provider: Engine provider identifier ("CUDAExecutionProvider")
        bundled: True if the provider ships with the engine package
    """

    name: str
    provider: str
    bundled: bool


@dataclass(frozen=True)
class BackendInfo:
    """Entry of the list_supported_backends() report."""

    name: str
    bundled: bool


_BUILTIN_BACKENDS = (
    BackendSpec("cpu", "CPUExecutionProvider", bundled=True),
    BackendSpec("dml", "DmlExecutionProvider", bundled=True),
    BackendSpec("webgpu", "WebGpuExecutionProvider", bundled=True),
    BackendSpec("cuda", "CUDAExecutionProvider", bundled=False),
    BackendSpec("tensorrt", "TensorrtExecutionProvider", bundled=False),
    BackendSpec("coreml", "CoreMLExecutionProvider", bundled=True),
    BackendSpec("qnn", "QNNExecutionProvider", bundled=True),
    BackendSpec("rocm", "ROCMExecutionProvider", bundled=False),
)


class BackendRegistry:
    """
    Singleton registry of execution providers.

    Thread Safety: All operations are protected by a lock.
    """

    _instance: Optional["BackendRegistry"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "BackendRegistry":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._backends: Dict[str, BackendSpec] = {}
        self._initialized = True

        for spec in _BUILTIN_BACKENDS:
            self._backends[spec.name] = spec

    def register_backend(self, spec: BackendSpec) -> None:
        """
        Register an execution provider.

        Args:
            spec: Provider description. Replaces any entry with the same name.
        """
        with self._lock:
            self._backends[spec.name] = spec
            logger.debug(f"Registered backend: {spec.name} -> {spec.provider}")

    def get(self, name: str) -> Optional[BackendSpec]:
        """Look up a backend by short name or by provider identifier."""
        with self._lock:
            key = name.lower()
            if key in self._backends:
                return self._backends[key]
            for spec in self._backends.values():
                if spec.provider == name:
                    return spec
        return None

    def resolve_provider(self, name: str) -> str:
        """
        Map a backend name from session options to an engine provider.

        Raises:
            InvalidArgumentError: If the name is unknown.
        """
        spec = self.get(name)
        if spec is None:
            raise InvalidArgumentError(
                f"unsupported execution provider '{name}'",
                parameter="execution_providers",
                expected=", ".join(self.names()),
                received=name,
            )
        return spec.provider

    def names(self) -> List[str]:
        with self._lock:
            return list(self._backends)

    def supported(self, available_providers: List[str]) -> List[BackendInfo]:
        """
        Intersect the table with what the engine build provides.

        "cpu" is always reported first.
        """
        available = set(available_providers)
        with self._lock:
            specs = list(self._backends.values())

        result = [BackendInfo("cpu", True)]
        for spec in specs:
            if spec.name == "cpu":
                continue
            if spec.provider in available:
                result.append(BackendInfo(spec.name, spec.bundled))
        return result

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        with cls._lock:
            cls._instance = None


def get_registry() -> BackendRegistry:
    """Get the global backend registry."""
    return BackendRegistry()


def list_supported_backends(engine=None) -> List[BackendInfo]:
    """
    Report the execution providers usable in this process.

    Static capability report, independent of any session.

    Args:
        engine: Engine to query; defaults to the process engine.
    """
    if engine is None:
        from ..engine.environment import get_engine

        engine = get_engine()
    backends = get_registry().supported(engine.available_providers())
    logger.debug(f"Supported backends: {[b.name for b in backends]}")
    return backends
