# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Native Engine Interfaces

The session core talks to the native inference engine only through these
protocols. ``ort_engine`` implements them on top of onnxruntime; tests
substitute fakes to observe native calls.

Contract:
- NativeEngine.create_session(): compile a model into a NativeSession
- NativeSession: reflection (inputs/outputs), direct run, I/O binding,
  profiling, close
- NativeBinding: bind inputs/outputs by name, run, fetch bound outputs

All engine failures surface as inferra.errors.EngineError (or
AllocationError) with the engine's message preserved.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from ..core.tensor import TensorValue
from ..core.types import MemoryLocation, ModelSource


@dataclass(frozen=True)
class NodeInfo:
    """Reflection record for one model input or output."""

    name: str
    type_string: str
    shape: Optional[tuple] = None


class NativeBinding(Protocol):
    """Pre-attaches inputs and outputs to memory locations before a run."""

    def bind_input(self, name: str, value: TensorValue) -> None: ...

    def bind_output(self, name: str, location: MemoryLocation) -> None: ...

    def bind_output_value(self, name: str, value: TensorValue) -> None: ...

    def clear(self) -> None: ...

    def run(self, run_options: Any = None) -> None: ...

    def get_outputs(self) -> list[TensorValue]: ...

    def release(self) -> None: ...


class NativeSession(Protocol):
    """A compiled model owned by the engine."""

    def input_infos(self) -> list[NodeInfo]: ...

    def output_infos(self) -> list[NodeInfo]: ...

    def run(
        self,
        output_names: list[str],
        feeds: dict[str, TensorValue],
        preallocated: dict[str, TensorValue],
        run_options: Any = None,
    ) -> list[TensorValue]: ...

    def io_binding(self) -> NativeBinding: ...

    def end_profiling(self) -> str: ...

    def close(self) -> None: ...


class NativeEngine(Protocol):
    """Factory for native sessions plus process-wide engine hooks."""

    name: str

    def initialize(self, log_level: int) -> None: ...

    def create_session(self, source: ModelSource, options: Any) -> NativeSession: ...

    def make_run_options(self, options: Any) -> Any: ...

    def available_providers(self) -> list[str]: ...
