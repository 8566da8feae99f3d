# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""Inferra Core Module"""

from .types import (
    DEFAULT_CPU,
    DEVICE_SPACES,
    ElementType,
    LocationKind,
    MemoryLocation,
    ModelBytes,
    ModelPath,
    ModelSource,
    Ownership,
    element_type_from_name,
    element_type_from_numpy,
    element_type_to_name,
    element_type_to_numpy,
    model_source,
)
from .tensor import DeviceBuffer, Dimension, TensorDescriptor, TensorValue
from .schema import SchemaCache, make_descriptor, parse_type_string

__all__ = [
    "DEFAULT_CPU",
    "DEVICE_SPACES",
    "ElementType",
    "LocationKind",
    "MemoryLocation",
    "ModelBytes",
    "ModelPath",
    "ModelSource",
    "Ownership",
    "element_type_from_name",
    "element_type_from_numpy",
    "element_type_to_name",
    "element_type_to_numpy",
    "model_source",
    "DeviceBuffer",
    "Dimension",
    "TensorDescriptor",
    "TensorValue",
    "SchemaCache",
    "make_descriptor",
    "parse_type_string",
]
