# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tests for the onnxruntime adapter: error boundary and option translation.
"""

import pytest

ort = pytest.importorskip("onnxruntime")

from inferra.engine.ort_engine import (  # noqa: E402
    OrtEngine,
    build_session_options,
    native_call,
)
from inferra.errors import (  # noqa: E402
    AllocationError,
    EngineError,
    SizeMismatchError,
)
from inferra.runtime.options import RunOptions, SessionOptions  # noqa: E402


class TestNativeCall:
    """Tests for the native_call error boundary."""

    def test_engine_message_preserved(self):
        with pytest.raises(EngineError) as exc_info:
            with native_call("run"):
                raise RuntimeError("[ONNXRuntimeError] : 6 : RUNTIME_EXCEPTION : boom")
        error = exc_info.value
        assert error.engine_message == "[ONNXRuntimeError] : 6 : RUNTIME_EXCEPTION : boom"
        assert error.operation == "run"
        assert isinstance(error.__cause__, RuntimeError)

    def test_allocation_failure(self):
        with pytest.raises(AllocationError):
            with native_call("run", "cuda:0"):
                raise RuntimeError("CUDA failure 2: out of memory")

    def test_host_memory_error(self):
        with pytest.raises(AllocationError):
            with native_call("load"):
                raise MemoryError()

    def test_inferra_errors_pass_through(self):
        with pytest.raises(SizeMismatchError):
            with native_call("run"):
                raise SizeMismatchError("bad")


class TestBuildSessionOptions:
    """SessionOptions -> ort.SessionOptions."""

    def test_translation(self):
        so = build_session_options(
            SessionOptions(
                graph_optimization_level="basic",
                intra_op_num_threads=2,
                execution_mode="parallel",
                enable_mem_pattern=False,
                log_id="inferra-test",
                log_severity_level=3,
            )
        )
        assert so.graph_optimization_level == ort.GraphOptimizationLevel.ORT_ENABLE_BASIC
        assert so.intra_op_num_threads == 2
        assert so.execution_mode == ort.ExecutionMode.ORT_PARALLEL
        assert so.enable_mem_pattern is False
        assert so.logid == "inferra-test"
        assert so.log_severity_level == 3

    def test_config_entries(self):
        so = build_session_options(
            SessionOptions(extra={"session": {"disable_prepacking": "1"}})
        )
        assert so.get_session_config_entry("session.disable_prepacking") == "1"


class TestOrtEngine:
    """Tests for OrtEngine helpers."""

    def test_run_options(self):
        run_options = OrtEngine().make_run_options(
            RunOptions(tag="req-9", log_severity_level=1, terminate=True)
        )
        assert run_options.logid == "req-9"
        assert run_options.log_severity_level == 1
        assert run_options.terminate is True

    def test_no_run_options(self):
        assert OrtEngine().make_run_options(None) is None

    def test_invalid_model_bytes(self):
        """Parse failures surface as engine errors at load."""
        from inferra.core.types import ModelBytes

        with pytest.raises(EngineError):
            OrtEngine().create_session(ModelBytes(b"\x00", 0, 1), SessionOptions())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
