# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Inferra Engine Module

Boundary to the native inference engine:
- NativeEngine / NativeSession / NativeBinding: protocols the runtime uses
- EngineEnvironment: process-wide one-time engine initialization
- OrtEngine: onnxruntime implementation (imported lazily)
"""

from .base import NativeBinding, NativeEngine, NativeSession, NodeInfo
from .environment import (
    EngineEnvironment,
    get_engine,
    get_environment,
    initialize_environment,
)

__all__ = [
    "NativeBinding",
    "NativeEngine",
    "NativeSession",
    "NodeInfo",
    "EngineEnvironment",
    "get_engine",
    "get_environment",
    "initialize_environment",
]
