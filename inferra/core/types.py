# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Inferra Core Types

Element types, memory locations, buffer ownership tags and the model
source variant accepted by InferenceSession.load().
"""

import os
from dataclasses import dataclass
from enum import Enum, IntEnum, auto
from typing import Optional, Union

import numpy as np

from ..errors import ConfigurationError, InvalidArgumentError


class ElementType(IntEnum):
    """Tensor element types, numbered as in the ONNX TensorProto enum."""

    Float32 = 1
    UInt8 = 2
    Int8 = 3
    UInt16 = 4
    Int16 = 5
    Int32 = 6
    Int64 = 7
    String = 8
    Bool = 9
    Float16 = 10
    Float64 = 11
    UInt32 = 12
    UInt64 = 13
    Complex64 = 14
    Complex128 = 15
    BFloat16 = 16


# Engine type-string spelling, e.g. "tensor(float)" -> "float"
_TYPE_NAMES = {
    ElementType.Float32: "float",
    ElementType.UInt8: "uint8",
    ElementType.Int8: "int8",
    ElementType.UInt16: "uint16",
    ElementType.Int16: "int16",
    ElementType.Int32: "int32",
    ElementType.Int64: "int64",
    ElementType.String: "string",
    ElementType.Bool: "bool",
    ElementType.Float16: "float16",
    ElementType.Float64: "double",
    ElementType.UInt32: "uint32",
    ElementType.UInt64: "uint64",
    ElementType.Complex64: "complex64",
    ElementType.Complex128: "complex128",
    ElementType.BFloat16: "bfloat16",
}

_NAME_TO_TYPE = {name: dtype for dtype, name in _TYPE_NAMES.items()}

# numpy has no native bfloat16
_NUMPY_DTYPES = {
    ElementType.Float32: np.dtype(np.float32),
    ElementType.UInt8: np.dtype(np.uint8),
    ElementType.Int8: np.dtype(np.int8),
    ElementType.UInt16: np.dtype(np.uint16),
    ElementType.Int16: np.dtype(np.int16),
    ElementType.Int32: np.dtype(np.int32),
    ElementType.Int64: np.dtype(np.int64),
    ElementType.String: np.dtype(object),
    ElementType.Bool: np.dtype(np.bool_),
    ElementType.Float16: np.dtype(np.float16),
    ElementType.Float64: np.dtype(np.float64),
    ElementType.UInt32: np.dtype(np.uint32),
    ElementType.UInt64: np.dtype(np.uint64),
    ElementType.Complex64: np.dtype(np.complex64),
    ElementType.Complex128: np.dtype(np.complex128),
}


def element_type_from_name(name: str) -> ElementType:
    """Parse an engine element name such as "float" or "int64"."""
    try:
        return _NAME_TO_TYPE[name]
    except KeyError:
        raise InvalidArgumentError(
            f"unknown element type '{name}'",
            parameter="element_type",
            expected=", ".join(sorted(_NAME_TO_TYPE)),
            received=name,
        ) from None


def element_type_to_name(dtype: ElementType) -> str:
    """Get the engine spelling of an element type."""
    return _TYPE_NAMES[dtype]


def element_type_to_numpy(dtype: ElementType) -> Optional[np.dtype]:
    """Get the numpy dtype for an element type, or None if numpy lacks one."""
    return _NUMPY_DTYPES.get(dtype)


def element_type_from_numpy(dtype) -> ElementType:
    """Map a numpy dtype to its element type."""
    dtype = np.dtype(dtype)
    if dtype.kind in ("U", "S", "O"):
        return ElementType.String
    for element_type, candidate in _NUMPY_DTYPES.items():
        if candidate == dtype:
            return element_type
    raise InvalidArgumentError(
        f"numpy dtype {dtype} has no tensor element type",
        parameter="dtype",
        received=str(dtype),
    )


class LocationKind(Enum):
    """Where a tensor buffer lives."""

    CPU = auto()
    DEVICE = auto()


# Device memory spaces the engine can bind outputs to
DEVICE_SPACES = ("cuda", "dml", "rocm", "webgpu")

# Extra spellings accepted in location tokens
_SPACE_ALIASES = {
    "gpu": "cuda",
    "gpu-buffer": "cuda",
}


@dataclass(frozen=True)
class MemoryLocation:
    """
    A memory space: Default-CPU or a device buffer space.

    Attributes:
        space: "cpu" or one of DEVICE_SPACES
        device_id: Device ordinal within the space
    """

    space: str = "cpu"
    device_id: int = 0

    @property
    def kind(self) -> LocationKind:
        return LocationKind.CPU if self.space == "cpu" else LocationKind.DEVICE

    @property
    def is_default(self) -> bool:
        return self.space == "cpu"

    @classmethod
    def parse(cls, token: Union[str, "MemoryLocation"]) -> "MemoryLocation":
        """
        Parse a location token.

        Accepts "cpu", "<space>" and "<space>:<device_id>" where space is
        one of DEVICE_SPACES or an alias ("gpu", "gpu-buffer").

        Raises:
            ConfigurationError: If the token is not a recognized location.
        """
        if isinstance(token, MemoryLocation):
            return token
        if not isinstance(token, str):
            raise ConfigurationError(
                "location token must be a string",
                config_key="preferred_output_location",
                config_value=repr(token),
            )

        text = token.strip().lower()
        space, sep, ordinal = text.partition(":")
        space = _SPACE_ALIASES.get(space, space)

        device_id = 0
        if sep:
            if not ordinal.isdigit():
                raise ConfigurationError(
                    f"invalid device ordinal in location '{token}'",
                    config_key="preferred_output_location",
                    config_value=token,
                )
            device_id = int(ordinal)

        if space == "cpu":
            if device_id != 0:
                raise ConfigurationError(
                    f"cpu location takes no device ordinal: '{token}'",
                    config_key="preferred_output_location",
                    config_value=token,
                )
            return DEFAULT_CPU
        if space not in DEVICE_SPACES:
            raise ConfigurationError(
                f"unknown memory location '{token}'",
                config_key="preferred_output_location",
                config_value=token,
            )
        return cls(space=space, device_id=device_id)

    def __str__(self) -> str:
        if self.is_default:
            return "cpu"
        return f"{self.space}:{self.device_id}"


DEFAULT_CPU = MemoryLocation()


class Ownership(Enum):
    """Who is responsible for releasing a tensor buffer."""

    OWNED_BY_CALLER = auto()
    OWNED_BY_SESSION = auto()
    OWNED_BY_DEVICE_POOL = auto()


@dataclass(frozen=True)
class ModelPath:
    """Model source read from the filesystem."""

    path: str


@dataclass(frozen=True)
class ModelBytes:
    """Model source held in memory as a byte range of a buffer."""

    buffer: bytes
    offset: int = 0
    length: Optional[int] = None

    def view(self) -> memoryview:
        """Return the selected byte range without copying."""
        view = memoryview(self.buffer)
        if view.ndim != 1 or view.format != "B":
            view = view.cast("B")
        return view[self.offset : self.offset + self.length]


ModelSource = Union[ModelPath, ModelBytes]


def model_source(
    source, offset: Optional[int] = None, length: Optional[int] = None
) -> ModelSource:
    """
    Decide the model source variant at the call boundary.

    Args:
        source: A ModelPath/ModelBytes, a filesystem path (str or PathLike),
            or a bytes-like buffer.
        offset: Start of the model within a buffer source.
        length: Number of model bytes within a buffer source.

    Raises:
        InvalidArgumentError: If the source is of any other shape, or the
            byte range does not lie within the buffer.
    """
    if isinstance(source, ModelPath):
        return source
    if isinstance(source, (str, os.PathLike)):
        if offset is not None or length is not None:
            raise InvalidArgumentError(
                "offset/length only apply to buffer sources",
                parameter="source",
                expected="(model_path, options) or (buffer, offset, length, options)",
            )
        return ModelPath(os.fspath(source))

    if isinstance(source, ModelBytes):
        if offset is not None or length is not None:
            source = ModelBytes(source.buffer, offset or 0, length)
        buffer, offset, length = source.buffer, source.offset, source.length
    elif isinstance(source, (bytes, bytearray, memoryview)):
        buffer = source
    else:
        raise InvalidArgumentError(
            "source has to be either a model path or a model buffer",
            parameter="source",
            expected="str, os.PathLike, bytes, bytearray, memoryview",
            received=type(source).__name__,
        )

    size = memoryview(buffer).nbytes
    offset = 0 if offset is None else offset
    length = size - offset if length is None else length
    if offset < 0 or length < 0 or offset + length > size:
        raise InvalidArgumentError(
            f"byte range [{offset}, {offset + length}) is outside a buffer "
            f"of {size} bytes",
            parameter="source",
        )
    return ModelBytes(buffer=buffer, offset=offset, length=length)
