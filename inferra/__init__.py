# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Inferra: Python Runtime Binding for ONNX Inference

Loads ONNX models into a native inference engine, exposes their declared
inputs and outputs, and runs inference with exact tensor conversion and
optional device-resident outputs.

Example:
    import numpy as np
    import inferra

    with inferra.InferenceSession().load("model.onnx") as session:
        result = session.run({"x": np.ones((1, 3), np.float32)})
"""

__version__ = "0.1.0"
__author__ = "Wahyu Ardiansyah"

# Core types
from .core import (
    DeviceBuffer,
    ElementType,
    MemoryLocation,
    ModelBytes,
    ModelPath,
    Ownership,
    TensorDescriptor,
    TensorValue,
)

# Backends and engine environment
from .backends import BackendInfo, list_supported_backends
from .engine import initialize_environment

# Sessions
from .runtime import (
    InferenceSession,
    RunOptions,
    SessionOptions,
    SessionState,
)

# Observability
from .observability import Verbosity, set_verbosity

# Errors
from .errors import (
    InferraError,
    InvalidArgumentError,
    LifecycleError,
    AlreadyLoadedError,
    NotInitializedError,
    AlreadyDisposedError,
    TypeMismatchError,
    UnsupportedShapeError,
    SizeMismatchError,
    ConfigurationError,
    EngineError,
    AllocationError,
)

__all__ = [
    "__version__",
    # Core types
    "DeviceBuffer",
    "ElementType",
    "MemoryLocation",
    "ModelBytes",
    "ModelPath",
    "Ownership",
    "TensorDescriptor",
    "TensorValue",
    # Backends and environment
    "BackendInfo",
    "list_supported_backends",
    "initialize_environment",
    # Sessions
    "InferenceSession",
    "RunOptions",
    "SessionOptions",
    "SessionState",
    # Observability
    "Verbosity",
    "set_verbosity",
    # Errors
    "InferraError",
    "InvalidArgumentError",
    "LifecycleError",
    "AlreadyLoadedError",
    "NotInitializedError",
    "AlreadyDisposedError",
    "TypeMismatchError",
    "UnsupportedShapeError",
    "SizeMismatchError",
    "ConfigurationError",
    "EngineError",
    "AllocationError",
]
