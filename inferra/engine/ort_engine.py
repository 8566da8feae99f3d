# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
ONNX Runtime engine adapter.

The only module that talks to onnxruntime. Implements the NativeEngine,
NativeSession and NativeBinding protocols and is the error boundary:
every onnxruntime exception is re-raised as EngineError (or
AllocationError) with the original message preserved.

Features:
- Session options translation (providers, threads, optimization level,
  profiling, free dimension overrides, config entries)
- Direct runs through InferenceSession.run()
- I/O binding for device outputs and caller-owned device inputs
- Pre-allocated outputs written in place through a transient binding
"""

from contextlib import contextmanager
from typing import Any, Optional

import numpy as np
import onnxruntime as ort

from ..core.schema import parse_type_string
from ..core.tensor import DeviceBuffer, TensorValue
from ..core.types import (
    DEFAULT_CPU,
    MemoryLocation,
    ModelPath,
    ModelSource,
    Ownership,
    element_type_from_numpy,
    element_type_to_name,
    element_type_to_numpy,
)
from ..errors import (
    AllocationError,
    EngineError,
    InferraError,
    TypeMismatchError,
)
from ..observability import get_logger
from .base import NodeInfo

logger = get_logger().bind(component="engine")

_GRAPH_OPTIMIZATION_LEVELS = {
    "disabled": ort.GraphOptimizationLevel.ORT_DISABLE_ALL,
    "basic": ort.GraphOptimizationLevel.ORT_ENABLE_BASIC,
    "extended": ort.GraphOptimizationLevel.ORT_ENABLE_EXTENDED,
    "all": ort.GraphOptimizationLevel.ORT_ENABLE_ALL,
}

_EXECUTION_MODES = {
    "sequential": ort.ExecutionMode.ORT_SEQUENTIAL,
    "parallel": ort.ExecutionMode.ORT_PARALLEL,
}

_ALLOCATION_FAILURES = ("failed to allocate", "out of memory", "bad_alloc")


@contextmanager
def native_call(operation: str, device: Optional[str] = None):
    """
    Error boundary around onnxruntime calls.

    Inferra errors pass through untouched; everything else is re-raised as
    EngineError, or AllocationError when the engine ran out of memory.
    """
    try:
        yield
    except InferraError:
        raise
    except MemoryError as e:
        raise AllocationError(str(e) or "host allocation failed", device=device) from e
    except Exception as e:
        message = str(e)
        if any(marker in message.lower() for marker in _ALLOCATION_FAILURES):
            raise AllocationError(message, device=device) from e
        logger.error("Engine call failed", operation=operation, error=message)
        raise EngineError(message, operation=operation) from e


def build_session_options(options) -> ort.SessionOptions:
    """Translate a validated inferra SessionOptions into ort.SessionOptions."""
    so = ort.SessionOptions()
    if options.graph_optimization_level is not None:
        so.graph_optimization_level = _GRAPH_OPTIMIZATION_LEVELS[
            options.graph_optimization_level
        ]
    if options.intra_op_num_threads is not None:
        so.intra_op_num_threads = options.intra_op_num_threads
    if options.inter_op_num_threads is not None:
        so.inter_op_num_threads = options.inter_op_num_threads
    if options.execution_mode is not None:
        so.execution_mode = _EXECUTION_MODES[options.execution_mode]
    if options.enable_cpu_mem_arena is not None:
        so.enable_cpu_mem_arena = options.enable_cpu_mem_arena
    if options.enable_mem_pattern is not None:
        so.enable_mem_pattern = options.enable_mem_pattern
    so.enable_profiling = options.enable_profiling
    if options.profile_file_prefix is not None:
        so.profile_file_prefix = options.profile_file_prefix
    if options.optimized_model_filepath is not None:
        so.optimized_model_filepath = options.optimized_model_filepath
    if options.log_id is not None:
        so.logid = options.log_id
    if options.log_severity_level is not None:
        so.log_severity_level = options.log_severity_level
    if options.log_verbosity_level is not None:
        so.log_verbosity_level = options.log_verbosity_level
    for dim_name, size in options.free_dimension_overrides.items():
        so.add_free_dimension_override_by_name(dim_name, size)
    for key, value in options.config_entries().items():
        so.add_session_config_entry(key, value)
    return so


def _output_value(
    name: str, value: Any, location: MemoryLocation = DEFAULT_CPU
) -> TensorValue:
    """Wrap one engine result into a TensorValue."""
    if isinstance(value, ort.OrtValue):
        if location.is_default or value.device_name().lower() == "cpu":
            value = value.numpy()
        else:
            _, element_type = parse_type_string(value.data_type())
            return TensorValue(
                data=value,
                element_type=element_type,
                shape=tuple(value.shape()),
                location=location,
                ownership=Ownership.OWNED_BY_DEVICE_POOL,
                name=name,
            )

    if isinstance(value, np.ndarray):
        return TensorValue(
            data=value,
            element_type=element_type_from_numpy(value.dtype),
            shape=tuple(value.shape),
            ownership=Ownership.OWNED_BY_SESSION,
            name=name,
        )

    # sequences and maps arrive as Python lists/dicts
    return TensorValue(
        data=value,
        is_tensor=False,
        ownership=Ownership.OWNED_BY_SESSION,
        name=name,
    )


def _host_input(value: TensorValue) -> Any:
    if not value.is_tensor or isinstance(value.data, np.ndarray):
        return value.data
    return value.numpy()


class OrtBinding:
    """NativeBinding over ort.IOBinding."""

    def __init__(self, session: ort.InferenceSession):
        self._session = session
        with native_call("io_binding"):
            self._binding = session.io_binding()
        self._outputs: list[tuple[str, MemoryLocation]] = []
        self._host_outputs: dict[str, np.ndarray] = {}

    def bind_input(self, name: str, value: TensorValue) -> None:
        data = value.data
        with native_call("bind_input", str(value.location)):
            if isinstance(data, DeviceBuffer):
                self._binding.bind_input(
                    name=name,
                    device_type=data.location.space,
                    device_id=data.location.device_id,
                    element_type=self._numpy_type(data),
                    shape=tuple(data.shape),
                    buffer_ptr=data.ptr,
                )
            elif isinstance(data, ort.OrtValue):
                self._binding.bind_ortvalue_input(name, data)
            elif isinstance(data, np.ndarray):
                self._binding.bind_cpu_input(name, data)
            else:
                raise TypeMismatchError(
                    "non-tensor inputs cannot be used with I/O binding",
                    tensor_name=name,
                )

    def bind_output(self, name: str, location: MemoryLocation) -> None:
        with native_call("bind_output", str(location)):
            self._binding.bind_output(
                name, device_type=location.space, device_id=location.device_id
            )
        self._outputs.append((name, location))

    def bind_output_value(self, name: str, value: TensorValue) -> None:
        data = value.data
        with native_call("bind_output", str(value.location)):
            if isinstance(data, DeviceBuffer):
                self._binding.bind_output(
                    name=name,
                    device_type=data.location.space,
                    device_id=data.location.device_id,
                    element_type=self._numpy_type(data),
                    shape=tuple(data.shape),
                    buffer_ptr=data.ptr,
                )
            elif isinstance(data, ort.OrtValue):
                self._binding.bind_ortvalue_output(name, data)
            elif isinstance(data, np.ndarray):
                # the engine writes into the caller's array
                self._binding.bind_ortvalue_output(
                    name, ort.OrtValue.ortvalue_from_numpy(data)
                )
                self._host_outputs[name] = data
            else:
                raise TypeMismatchError(
                    "non-tensor outputs cannot be pre-allocated",
                    tensor_name=name,
                )
        self._outputs.append((name, value.location))

    @staticmethod
    def _numpy_type(buffer: DeviceBuffer):
        dtype = element_type_to_numpy(buffer.element_type)
        if dtype is None:
            raise TypeMismatchError(
                f"{element_type_to_name(buffer.element_type)} buffers cannot be bound",
                received=element_type_to_name(buffer.element_type),
            )
        return dtype.type

    def clear(self) -> None:
        with native_call("clear_binding"):
            self._binding.clear_binding_inputs()
            self._binding.clear_binding_outputs()
        self._outputs = []
        self._host_outputs = {}

    def run(self, run_options: Any = None) -> None:
        with native_call("run_with_iobinding"):
            self._session.run_with_iobinding(self._binding, run_options)

    def get_outputs(self) -> list[TensorValue]:
        with native_call("get_outputs"):
            values = list(self._binding.get_outputs())

        results = []
        for (name, location), value in zip(self._outputs, values):
            if name in self._host_outputs:
                array = self._host_outputs[name]
                results.append(
                    TensorValue(
                        data=array,
                        element_type=element_type_from_numpy(array.dtype),
                        shape=tuple(array.shape),
                        ownership=Ownership.OWNED_BY_CALLER,
                        name=name,
                    )
                )
            else:
                results.append(_output_value(name, value, location))
        # surplus engine values (count mismatch) are reported by the caller
        results.extend(
            _output_value(f"#{i}", value)
            for i, value in enumerate(values[len(self._outputs) :], len(self._outputs))
        )
        return results

    def release(self) -> None:
        self._binding = None
        self._outputs = []
        self._host_outputs = {}


class OrtSession:
    """NativeSession over ort.InferenceSession."""

    def __init__(self, session: ort.InferenceSession):
        self._session = session

    @staticmethod
    def _infos(node_args) -> list[NodeInfo]:
        return [
            NodeInfo(
                name=arg.name,
                type_string=arg.type,
                shape=tuple(arg.shape) if arg.shape is not None else None,
            )
            for arg in node_args
        ]

    def input_infos(self) -> list[NodeInfo]:
        with native_call("get_inputs"):
            return self._infos(self._session.get_inputs())

    def output_infos(self) -> list[NodeInfo]:
        with native_call("get_outputs"):
            return self._infos(self._session.get_outputs())

    def run(
        self,
        output_names: list[str],
        feeds: dict[str, TensorValue],
        preallocated: dict[str, TensorValue],
        run_options: Any = None,
    ) -> list[TensorValue]:
        if preallocated or any(value.is_device for value in feeds.values()):
            return self._run_bound_once(output_names, feeds, preallocated, run_options)

        host_feeds = {name: _host_input(value) for name, value in feeds.items()}
        with native_call("run"):
            if not output_names:
                # an empty name list means "all outputs" to onnxruntime
                self._session.run(None, host_feeds, run_options)
                return []
            results = self._session.run(list(output_names), host_feeds, run_options)
        return [_output_value(name, value) for name, value in zip(output_names, results)]

    def _run_bound_once(self, output_names, feeds, preallocated, run_options):
        binding = self.io_binding()
        try:
            for name, value in feeds.items():
                binding.bind_input(name, value)
            for name in output_names:
                if name in preallocated:
                    binding.bind_output_value(name, preallocated[name])
                else:
                    binding.bind_output(name, DEFAULT_CPU)
            binding.run(run_options)
            return binding.get_outputs()
        finally:
            binding.release()

    def io_binding(self) -> OrtBinding:
        return OrtBinding(self._session)

    def end_profiling(self) -> str:
        with native_call("end_profiling"):
            return self._session.end_profiling() or ""

    def close(self) -> None:
        self._session = None


class OrtEngine:
    """NativeEngine backed by onnxruntime."""

    name = "onnxruntime"

    def initialize(self, log_level: int) -> None:
        with native_call("initialize"):
            ort.set_default_logger_severity(log_level)
        logger.debug(
            "Engine environment initialized",
            engine=self.name,
            version=ort.__version__,
            log_level=log_level,
        )

    def create_session(self, source: ModelSource, options) -> OrtSession:
        providers = options.resolved_providers() or [("CPUExecutionProvider", {})]
        if isinstance(source, ModelPath):
            model = source.path
        else:
            model = bytes(source.view())

        with native_call("load"):
            session = ort.InferenceSession(
                model,
                sess_options=build_session_options(options),
                providers=[provider for provider, _ in providers],
                provider_options=[provider_options for _, provider_options in providers],
            )
        logger.info(
            "ONNX Runtime session created",
            providers=session.get_providers(),
        )
        return OrtSession(session)

    def make_run_options(self, options) -> Optional[ort.RunOptions]:
        if options is None:
            return None
        run_options = ort.RunOptions()
        if options.tag is not None:
            run_options.logid = options.tag
        if options.log_severity_level is not None:
            run_options.log_severity_level = options.log_severity_level
        if options.log_verbosity_level is not None:
            run_options.log_verbosity_level = options.log_verbosity_level
        if options.terminate:
            run_options.terminate = True
        return run_options

    def available_providers(self) -> list[str]:
        return list(ort.get_available_providers())
