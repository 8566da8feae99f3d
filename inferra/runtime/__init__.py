# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Inferra Runtime Module

Components:
- InferenceSession: Session lifecycle and run coordination
- SessionOptions / RunOptions: Validated configuration records
- TensorMarshal: Host value <-> tensor value conversion
- resolve_output_locations: Per-output memory placement
"""

from .options import (
    EXECUTION_MODES,
    GRAPH_OPTIMIZATION_LEVELS,
    RunOptions,
    SessionOptions,
    coerce_run_options,
    coerce_session_options,
)
from .locations import requires_binding, resolve_output_locations
from .marshal import TensorMarshal, get_marshal, to_host, to_native
from .session import InferenceSession, SessionState

__all__ = [
    "EXECUTION_MODES",
    "GRAPH_OPTIMIZATION_LEVELS",
    "RunOptions",
    "SessionOptions",
    "coerce_run_options",
    "coerce_session_options",
    "requires_binding",
    "resolve_output_locations",
    "TensorMarshal",
    "get_marshal",
    "to_host",
    "to_native",
    "InferenceSession",
    "SessionState",
]
