# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Pytest configuration for Inferra Python tests.

Models are built at test time with onnx.helper; binding-mode tests run
against a fake engine so no GPU is needed.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add the project root to sys.path so we can import inferra
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from inferra.backends.registry import BackendRegistry  # noqa: E402
from inferra.core.tensor import TensorValue  # noqa: E402
from inferra.core.types import Ownership, element_type_from_numpy  # noqa: E402
from inferra.engine.base import NodeInfo  # noqa: E402
from inferra.engine.environment import EngineEnvironment  # noqa: E402
from inferra.observability.logger import InferraLogger  # noqa: E402

# Skip test modules that require optional dependencies not installed
collect_ignore = []

try:
    import onnx  # noqa: F401
except ImportError:
    collect_ignore.append("test_session.py")

# Check for hypothesis
try:
    import hypothesis  # noqa: F401
except ImportError:
    collect_ignore.append("test_property_based.py")


@pytest.fixture(autouse=True)
def reset_singletons():
    """Fresh registry, logger and engine environment for every test."""
    BackendRegistry.reset()
    InferraLogger.reset()
    EngineEnvironment.reset()
    yield
    BackendRegistry.reset()
    InferraLogger.reset()
    EngineEnvironment.reset()


# ----------------------------------------------------------------------
# ONNX model builders
# ----------------------------------------------------------------------


def _save(model, path: Path) -> str:
    # keep the IR version loadable by older onnxruntime releases
    model.ir_version = 8
    path.write_bytes(model.SerializeToString())
    return str(path)


def _model(nodes, inputs, outputs, name="test"):
    from onnx import helper

    graph = helper.make_graph(nodes, name, inputs, outputs)
    return helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])


@pytest.fixture
def doubling_model(tmp_path):
    """x: float32[1,3] -> y = x + x."""
    from onnx import TensorProto, helper

    model = _model(
        [helper.make_node("Add", ["x", "x"], ["y"])],
        [helper.make_tensor_value_info("x", TensorProto.FLOAT, [1, 3])],
        [helper.make_tensor_value_info("y", TensorProto.FLOAT, [1, 3])],
    )
    return _save(model, tmp_path / "doubling.onnx")


@pytest.fixture
def two_output_model(tmp_path):
    """x: float32[1,3] -> y = x + x, z = x * x."""
    from onnx import TensorProto, helper

    model = _model(
        [
            helper.make_node("Add", ["x", "x"], ["y"]),
            helper.make_node("Mul", ["x", "x"], ["z"]),
        ],
        [helper.make_tensor_value_info("x", TensorProto.FLOAT, [1, 3])],
        [
            helper.make_tensor_value_info("y", TensorProto.FLOAT, [1, 3]),
            helper.make_tensor_value_info("z", TensorProto.FLOAT, [1, 3]),
        ],
    )
    return _save(model, tmp_path / "two_output.onnx")


@pytest.fixture
def symbolic_model(tmp_path):
    """x: float32[batch,3] -> y = x + x."""
    from onnx import TensorProto, helper

    model = _model(
        [helper.make_node("Add", ["x", "x"], ["y"])],
        [helper.make_tensor_value_info("x", TensorProto.FLOAT, ["batch", 3])],
        [helper.make_tensor_value_info("y", TensorProto.FLOAT, ["batch", 3])],
    )
    return _save(model, tmp_path / "symbolic.onnx")


@pytest.fixture
def string_model(tmp_path):
    """s: string[2] -> t = Identity(s)."""
    from onnx import TensorProto, helper

    model = _model(
        [helper.make_node("Identity", ["s"], ["t"])],
        [helper.make_tensor_value_info("s", TensorProto.STRING, [2])],
        [helper.make_tensor_value_info("t", TensorProto.STRING, [2])],
    )
    return _save(model, tmp_path / "string.onnx")


@pytest.fixture
def sequence_model(tmp_path):
    """x: float32[2] -> seq = SequenceConstruct(x, x)."""
    from onnx import TensorProto, helper

    model = _model(
        [helper.make_node("SequenceConstruct", ["x", "x"], ["seq"])],
        [helper.make_tensor_value_info("x", TensorProto.FLOAT, [2])],
        [helper.make_tensor_sequence_value_info("seq", TensorProto.FLOAT, [2])],
    )
    return _save(model, tmp_path / "sequence.onnx")


# ----------------------------------------------------------------------
# Fake engine
# ----------------------------------------------------------------------


class FakeDeviceArray:
    """Stands in for an engine-owned device tensor."""

    def __init__(self, array: np.ndarray):
        self._array = array

    def numpy(self) -> np.ndarray:
        return self._array.copy()


class FakeBinding:
    """Records binding calls; doubles every bound input on run()."""

    def __init__(self, calls: list, extra_outputs: int = 0):
        self.calls = calls
        self.extra_outputs = extra_outputs
        self.inputs = {}
        self.outputs = []
        self.released = False

    def bind_input(self, name, value):
        self.calls.append(("bind_input", name))
        self.inputs[name] = value

    def bind_output(self, name, location):
        self.calls.append(("bind_output", name, str(location)))
        self.outputs.append((name, location, None))

    def bind_output_value(self, name, value):
        self.calls.append(("bind_output_value", name))
        self.outputs.append((name, value.location, value))

    def clear(self):
        self.calls.append(("clear",))
        self.inputs = {}
        self.outputs = []

    def run(self, run_options=None):
        self.calls.append(("binding_run",))

    def get_outputs(self):
        self.calls.append(("get_outputs",))
        source = next(iter(self.inputs.values())).data
        doubled = np.asarray(source) * 2
        results = []
        for name, location, supplied in self.outputs:
            if supplied is not None:
                results.append(supplied)
            elif location.is_default:
                results.append(
                    TensorValue(data=doubled, element_type=element_type_from_numpy(doubled.dtype),
                                shape=doubled.shape, name=name)
                )
            else:
                results.append(
                    TensorValue(
                        data=FakeDeviceArray(doubled),
                        element_type=element_type_from_numpy(doubled.dtype),
                        shape=doubled.shape,
                        location=location,
                        ownership=Ownership.OWNED_BY_DEVICE_POOL,
                        name=name,
                    )
                )
        results.extend(results[:1] * self.extra_outputs)
        return results

    def release(self):
        self.calls.append(("release_binding",))
        self.released = True


class FakeSession:
    """NativeSession over a single float32[1,3] input and outputs y, z."""

    def __init__(self, calls: list, outputs=("y", "z"), extra_outputs: int = 0):
        self.calls = calls
        self.output_names = outputs
        self.extra_outputs = extra_outputs
        self.binding = None
        self.closed = False

    def input_infos(self):
        return [NodeInfo("x", "tensor(float)", (1, 3))]

    def output_infos(self):
        return [NodeInfo(name, "tensor(float)", (1, 3)) for name in self.output_names]

    def run(self, output_names, feeds, preallocated, run_options=None):
        self.calls.append(("run", tuple(output_names)))
        doubled = feeds["x"].data * 2
        return [
            TensorValue(data=doubled.copy(), element_type=element_type_from_numpy(doubled.dtype),
                        shape=doubled.shape, name=name)
            for name in output_names
        ]

    def io_binding(self):
        self.calls.append(("io_binding",))
        self.binding = FakeBinding(self.calls, self.extra_outputs)
        return self.binding

    def end_profiling(self):
        self.calls.append(("end_profiling",))
        return "fake_profile.json"

    def close(self):
        self.calls.append(("close",))
        self.closed = True


class FakeEngine:
    """NativeEngine that hands out FakeSession objects and records calls."""

    name = "fake"

    def __init__(self, outputs=("y", "z"), extra_outputs: int = 0, providers=None):
        self.calls = []
        self.outputs = outputs
        self.extra_outputs = extra_outputs
        self.providers = providers or ["CPUExecutionProvider"]
        self.sessions = []

    def initialize(self, log_level):
        self.calls.append(("initialize", log_level))

    def create_session(self, source, options):
        self.calls.append(("create_session", source))
        session = FakeSession(self.calls, self.outputs, self.extra_outputs)
        self.sessions.append(session)
        return session

    def make_run_options(self, options):
        return options

    def available_providers(self):
        return list(self.providers)


@pytest.fixture
def make_fake_engine():
    """Factory installing a FakeEngine as the process engine."""

    def factory(**kwargs):
        engine = FakeEngine(**kwargs)
        EngineEnvironment.reset(engine)
        return engine

    return factory


@pytest.fixture
def fake_engine(make_fake_engine):
    """Fake engine installed as the process engine."""
    return make_fake_engine()
