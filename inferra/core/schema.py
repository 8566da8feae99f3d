# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Schema Cache - immutable input/output metadata of a loaded model.

Built once from the native session's reflection API when a session
transitions to LOADED, and never mutated afterwards.
"""

import re
from typing import Iterable, Optional

from ..errors import InvalidArgumentError
from .tensor import Dimension, TensorDescriptor
from .types import ElementType, element_type_from_name

_TENSOR_TYPE = re.compile(r"^tensor\((\w+)\)$")


def parse_type_string(type_string: str) -> tuple[bool, Optional[ElementType]]:
    """
    Split an engine type string into (is_tensor, element_type).

    "tensor(float)" -> (True, ElementType.Float32)
    "seq(tensor(float))" -> (False, None)
    "map(int64,float)" -> (False, None)
    """
    match = _TENSOR_TYPE.match(type_string)
    if match is None:
        return False, None
    try:
        return True, element_type_from_name(match.group(1))
    except InvalidArgumentError:
        # element kinds newer than ElementType (e.g. float8 variants)
        return True, None


def _normalize_dim(dim) -> Dimension:
    if dim is None or isinstance(dim, str):
        return dim
    dim = int(dim)
    # engines report unknown unnamed axes as negative sizes
    return dim if dim >= 0 else None


def make_descriptor(name: str, type_string: str, shape=None) -> TensorDescriptor:
    """Build a TensorDescriptor from raw reflection data."""
    is_tensor, element_type = parse_type_string(type_string)
    if not is_tensor:
        return TensorDescriptor(name=name, is_tensor=False, type_string=type_string)
    dims = tuple(_normalize_dim(d) for d in (shape or ()))
    return TensorDescriptor(
        name=name,
        is_tensor=True,
        element_type=element_type,
        shape=dims,
        type_string=type_string,
    )


class SchemaCache:
    """
    Ordered input and output descriptors for one session.

    Read-only: there is no mutation API. A new cache is built on every load.

    Example:
        schema = SchemaCache.from_native(native_session)
        schema.input_names            # ("x",)
        schema.output("y").shape      # (1, 3)
    """

    __slots__ = ("_inputs", "_outputs", "_input_index", "_output_index")

    def __init__(
        self,
        inputs: Iterable[TensorDescriptor],
        outputs: Iterable[TensorDescriptor],
    ):
        inputs = tuple(inputs)
        outputs = tuple(outputs)
        object.__setattr__(self, "_inputs", inputs)
        object.__setattr__(self, "_outputs", outputs)
        object.__setattr__(self, "_input_index", {d.name: d for d in inputs})
        object.__setattr__(self, "_output_index", {d.name: d for d in outputs})

    def __setattr__(self, name, value):
        raise AttributeError("SchemaCache is read-only")

    @classmethod
    def from_native(cls, native_session) -> "SchemaCache":
        """Query the native session for input/output counts, names and types."""
        inputs = [
            make_descriptor(info.name, info.type_string, info.shape)
            for info in native_session.input_infos()
        ]
        outputs = [
            make_descriptor(info.name, info.type_string, info.shape)
            for info in native_session.output_infos()
        ]
        return cls(inputs, outputs)

    @property
    def inputs(self) -> tuple[TensorDescriptor, ...]:
        return self._inputs

    @property
    def outputs(self) -> tuple[TensorDescriptor, ...]:
        return self._outputs

    @property
    def input_names(self) -> tuple[str, ...]:
        return tuple(d.name for d in self._inputs)

    @property
    def output_names(self) -> tuple[str, ...]:
        return tuple(d.name for d in self._outputs)

    def input(self, name: str) -> TensorDescriptor:
        return self._input_index[name]

    def output(self, name: str) -> TensorDescriptor:
        return self._output_index[name]

    def has_input(self, name: str) -> bool:
        return name in self._input_index

    def has_output(self, name: str) -> bool:
        return name in self._output_index

    def __repr__(self) -> str:
        return f"SchemaCache(inputs={list(self.input_names)}, outputs={list(self.output_names)})"
