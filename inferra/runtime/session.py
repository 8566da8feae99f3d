# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
InferenceSession - session lifecycle and run coordination.

A session owns one native engine session and moves through

    UNINITIALIZED --load()--> LOADED --dispose()--> DISPOSED

Every other transition fails without side effects. Metadata and runs are
only available while LOADED.

Example:
    from inferra import InferenceSession

    session = InferenceSession()
    session.load("model.onnx")
    result = session.run({"x": np.ones((1, 3), np.float32)})
    session.dispose()
"""

import itertools
import threading
import time
import weakref
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional

from ..core.schema import SchemaCache
from ..core.tensor import TensorDescriptor, TensorValue
from ..core.types import MemoryLocation, model_source
from ..engine.base import NativeEngine
from ..engine.environment import get_environment
from ..errors import (
    AlreadyDisposedError,
    AlreadyLoadedError,
    EngineError,
    InferraError,
    InvalidArgumentError,
    NotInitializedError,
)
from ..observability import MetricsCollector, RunMetrics, get_logger
from .locations import requires_binding, resolve_output_locations
from .marshal import TensorMarshal, get_marshal
from .options import coerce_run_options, coerce_session_options

_session_ids = itertools.count(1)


class SessionState(Enum):
    """Lifecycle states of an InferenceSession."""

    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    DISPOSED = "disposed"


class InferenceSession:
    """
    A loaded, executable model bound to one native engine session.

    Not safe for concurrent use: load, run, dispose and end_profiling take
    a per-session lock, so at most one of them is in flight at a time.
    Use one session per worker for parallel inference.

    Args:
        engine: Native engine to use; defaults to the process engine.
        marshal: Tensor marshal; defaults to the shared instance.
    """

    def __init__(
        self,
        engine: Optional[NativeEngine] = None,
        marshal: Optional[TensorMarshal] = None,
    ):
        self.session_id = f"session-{next(_session_ids)}"
        self.metrics = MetricsCollector(self.session_id)

        self._engine = engine
        self._marshal = marshal or get_marshal()
        self._logger = get_logger().bind(component="session", session_id=self.session_id)
        self._lock = threading.RLock()

        self._state = SessionState.UNINITIALIZED
        self._native = None
        self._schema: Optional[SchemaCache] = None
        self._output_locations: tuple[MemoryLocation, ...] = ()
        self._binding = None
        self._device_outputs: "weakref.WeakSet[TensorValue]" = weakref.WeakSet()

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    def _check_loaded(self) -> None:
        if self._state is SessionState.UNINITIALIZED:
            raise NotInitializedError(self._state.value)
        if self._state is SessionState.DISPOSED:
            raise AlreadyDisposedError(self._state.value)

    def load(self, source, options=None) -> "InferenceSession":
        """
        Load a model and move to LOADED.

        Args:
            source: Model path (str / PathLike), model bytes, or a
                ModelPath / ModelBytes(buffer, offset, length).
            options: SessionOptions, a mapping of its fields, or None.

        Returns:
            self, for chaining.

        Raises:
            AlreadyLoadedError: The session already holds a model.
            AlreadyDisposedError: The session was disposed.
            InvalidArgumentError: Malformed source or options.
            ConfigurationError: Invalid preferred output locations.
            EngineError: The engine failed to create the session.
        """
        with self._lock:
            if self._state is SessionState.LOADED:
                raise AlreadyLoadedError(self._state.value)
            if self._state is SessionState.DISPOSED:
                raise AlreadyDisposedError(self._state.value)

            source = model_source(source)
            options = coerce_session_options(options)

            start = time.perf_counter()
            environment = get_environment()
            environment.initialize()
            engine = self._engine or environment.engine

            native = engine.create_session(source, options)
            try:
                schema = SchemaCache.from_native(native)
                locations = resolve_output_locations(
                    schema.output_names, options.preferred_output_location
                )
                binding = native.io_binding() if requires_binding(locations) else None
            except BaseException:
                native.close()
                raise

            self._engine = engine
            self._native = native
            self._schema = schema
            self._output_locations = locations
            self._binding = binding
            self._state = SessionState.LOADED

        self._logger.info(
            "Model loaded",
            operation="load",
            duration_ms=(time.perf_counter() - start) * 1000,
            inputs=list(schema.input_names),
            outputs=list(schema.output_names),
            io_binding=binding is not None,
        )
        return self

    def dispose(self) -> None:
        """
        Release the binding context, then the native session.

        Device outputs handed out by bound runs become unusable.

        Raises:
            NotInitializedError: The session was never loaded.
            AlreadyDisposedError: dispose() was already called.
        """
        with self._lock:
            self._check_loaded()

            if self._binding is not None:
                self._binding.release()
            self._native.close()
            for value in list(self._device_outputs):
                value.invalidate()

            self._binding = None
            self._native = None
            self._device_outputs = weakref.WeakSet()
            self._state = SessionState.DISPOSED

        self._logger.info("Session disposed", operation="dispose")

    def end_profiling(self) -> str:
        """
        Flush the engine profiling trace.

        Returns:
            Path of the trace file, or "" if profiling was not enabled.
        """
        with self._lock:
            self._check_loaded()
            path = self._native.end_profiling()
        self._logger.debug(
            "Profiling ended",
            operation="end_profiling",
            path=path,
        )
        return path

    def __enter__(self) -> "InferenceSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._state is SessionState.LOADED:
            self.dispose()

    # ------------------------------------------------------------------
    # metadata
    # ------------------------------------------------------------------

    @property
    def input_names(self) -> list[str]:
        self._check_loaded()
        return list(self._schema.input_names)

    @property
    def output_names(self) -> list[str]:
        self._check_loaded()
        return list(self._schema.output_names)

    @property
    def input_metadata(self) -> list[TensorDescriptor]:
        self._check_loaded()
        return list(self._schema.inputs)

    @property
    def output_metadata(self) -> list[TensorDescriptor]:
        self._check_loaded()
        return list(self._schema.outputs)

    def get_input_metadata(self) -> list[TensorDescriptor]:
        return self.input_metadata

    def get_output_metadata(self) -> list[TensorDescriptor]:
        return self.output_metadata

    @property
    def output_locations(self) -> dict[str, MemoryLocation]:
        """Resolved memory location of every output."""
        self._check_loaded()
        return dict(zip(self._schema.output_names, self._output_locations))

    @property
    def uses_io_binding(self) -> bool:
        self._check_loaded()
        return self._binding is not None

    # ------------------------------------------------------------------
    # run
    # ------------------------------------------------------------------

    def run(self, feed, fetch=None, run_options=None) -> dict[str, Any]:
        """
        Run inference once.

        Args:
            feed: Mapping input name -> value. Names the model does not
                declare are ignored. Python numbers convert only when the
                result is exact: [0.5, 0.25] feeds a float32 input, while
                [0.1, 0.2] raises TypeMismatchError because those doubles
                have no exact float32 value. Pass a float32 array instead.
            fetch: Mapping output name -> None (engine allocates) or a
                pre-allocated value written in place; a sequence of
                output names; or None for every output.
            run_options: RunOptions, a mapping of its fields, or None.

        Returns:
            Mapping output name -> host value, in model output order.
            Outputs bound to a device space are returned as TensorValue
            handles that stay valid until dispose().

        Raises:
            NotInitializedError / AlreadyDisposedError: Checked first.
            InvalidArgumentError: feed/fetch/run_options of the wrong shape.
            TypeMismatchError / SizeMismatchError: Value conversion failed.
            EngineError: The engine failed; the session stays usable.
        """
        with self._lock:
            self._check_loaded()
            if not isinstance(feed, Mapping):
                raise InvalidArgumentError(
                    "inputs (feed) must be a mapping",
                    parameter="feed",
                    received=type(feed).__name__,
                )
            fetch = self._normalize_fetch(fetch)
            options = coerce_run_options(run_options)

            start = time.perf_counter()
            try:
                result, num_inputs = self._run(feed, fetch, options)
            except InferraError:
                self.metrics.record_error()
                raise

            latency_ms = (time.perf_counter() - start) * 1000
            self.metrics.record_run(
                RunMetrics(
                    latency_ms=latency_ms,
                    num_inputs=num_inputs,
                    num_outputs=len(result),
                    io_binding=self._binding is not None,
                )
            )

        self._logger.debug(
            "Run completed",
            operation="run",
            duration_ms=latency_ms,
            outputs=list(result),
        )
        return result

    def _normalize_fetch(self, fetch) -> dict[str, Any]:
        if fetch is None:
            return {name: None for name in self._schema.output_names}
        if isinstance(fetch, Mapping):
            return dict(fetch)
        if isinstance(fetch, (list, tuple, set, frozenset)):
            return {name: None for name in fetch}
        raise InvalidArgumentError(
            "outputs (fetch) must be a mapping or a sequence of output names",
            parameter="fetch",
            received=type(fetch).__name__,
        )

    def _run(self, feed: Mapping, fetch: dict, options) -> tuple[dict, int]:
        schema = self._schema
        marshal = self._marshal

        input_names = [name for name in schema.input_names if name in feed]
        output_names = [name for name in schema.output_names if name in fetch]

        ignored = sorted(
            (set(feed) - set(input_names)) | (set(fetch) - set(output_names)),
            key=str,
        )
        if ignored:
            self._logger.debug(
                "Ignoring names not declared by the model",
                names=ignored,
            )

        feeds = {
            name: marshal.to_native(feed[name], schema.input(name), None, name)
            for name in input_names
        }
        engine_options = self._engine.make_run_options(options)

        if self._binding is None:
            preallocated = {
                name: marshal.to_native(
                    fetch[name], schema.output(name), None, name
                )
                for name in output_names
                if fetch[name] is not None
            }
            outputs = self._native.run(
                output_names, feeds, preallocated, engine_options
            )
        else:
            outputs = self._run_bound(feeds, output_names, fetch, engine_options)

        if len(outputs) != len(output_names):
            raise EngineError("Output count mismatch.", operation="run")

        result = {}
        for name, value in zip(output_names, outputs):
            host_value = marshal.to_host(value)
            if isinstance(host_value, TensorValue):
                self._device_outputs.add(host_value)
            result[name] = host_value
        return result, len(feeds)

    def _run_bound(self, feeds, output_names, fetch, engine_options) -> list:
        schema = self._schema
        locations = dict(zip(schema.output_names, self._output_locations))

        # convert everything before touching the binding
        supplied = {
            name: self._marshal.to_native(
                fetch[name], schema.output(name), locations[name], name
            )
            for name in output_names
            if fetch[name] is not None
        }

        binding = self._binding
        binding.clear()
        for name, value in feeds.items():
            binding.bind_input(name, value)
        for name in output_names:
            if name in supplied:
                binding.bind_output_value(name, supplied[name])
            else:
                binding.bind_output(name, locations[name])

        binding.run(engine_options)
        return binding.get_outputs()

    def __repr__(self) -> str:
        return f"InferenceSession(id={self.session_id!r}, state={self._state.value})"
