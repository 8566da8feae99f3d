# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tensor Descriptor and Tensor Value
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional, Union

import numpy as np

from ..errors import AlreadyDisposedError, InvalidArgumentError, TypeMismatchError
from .types import (
    DEFAULT_CPU,
    ElementType,
    MemoryLocation,
    Ownership,
    element_type_to_name,
)

# A dimension is concrete (int), symbolic (str) or unknown (None)
Dimension = Union[int, str, None]


@dataclass(frozen=True)
class TensorDescriptor:
    """
    Describes one model input or output without holding data.

    Non-tensor values (sequences, maps, optionals) have is_tensor=False and
    carry no element type or shape.
    """

    name: str
    is_tensor: bool = True
    element_type: Optional[ElementType] = None
    shape: Optional[tuple[Dimension, ...]] = None
    type_string: str = ""

    @property
    def symbolic_dimensions(self) -> tuple[str, ...]:
        """Names of the symbolic axes, in axis order."""
        if not self.shape:
            return ()
        return tuple(d for d in self.shape if isinstance(d, str))

    @property
    def is_dynamic(self) -> bool:
        return bool(self.shape) and any(not isinstance(d, int) for d in self.shape)

    def __repr__(self) -> str:
        if not self.is_tensor or self.element_type is None:
            return f"TensorDescriptor(name='{self.name}', type={self.type_string})"
        return (
            f"TensorDescriptor(name='{self.name}', "
            f"shape={list(self.shape)}, "
            f"dtype={element_type_to_name(self.element_type)})"
        )


@dataclass
class DeviceBuffer:
    """
    A caller-owned buffer that already lives in device memory.

    Attributes:
        ptr: Device address as integer
        element_type: Element type of the buffer contents
        shape: Tensor shape
        location: Device memory space holding the buffer
        owner: Object that owns the allocation (kept alive while bound)
    """

    ptr: int
    element_type: ElementType
    shape: tuple[int, ...]
    location: MemoryLocation
    owner: Any = None


class _State(Enum):
    LIVE = auto()
    RELEASED = auto()
    INVALIDATED = auto()


@dataclass(eq=False)
class TensorValue:
    """
    A tensor crossing the host/engine boundary.

    ``data`` is one of:
    - numpy.ndarray: host buffer on the CPU
    - DeviceBuffer: caller-owned device memory
    - an engine value: produced by the native engine (device outputs)
    - a nested list/dict: non-tensor values (is_tensor=False)

    Example:
        value = marshal.to_native(np.ones((1, 3), np.float32))
        value.ownership  # Ownership.OWNED_BY_CALLER (zero-copy alias)
    """

    data: Any
    element_type: Optional[ElementType] = None
    shape: Optional[tuple[int, ...]] = None
    location: MemoryLocation = DEFAULT_CPU
    ownership: Ownership = Ownership.OWNED_BY_SESSION
    is_tensor: bool = True
    name: Optional[str] = None
    _state: _State = field(default=_State.LIVE, init=False, repr=False)

    @property
    def is_device(self) -> bool:
        return not self.location.is_default

    @property
    def released(self) -> bool:
        return self._state is _State.RELEASED

    def _check_usable(self) -> None:
        if self._state is _State.INVALIDATED:
            raise AlreadyDisposedError()
        if self._state is _State.RELEASED:
            raise InvalidArgumentError(
                "tensor value was already handed back to the host",
                parameter=self.name or "tensor",
            )

    def release(self) -> Any:
        """Hand the underlying data over; the value cannot be used afterwards."""
        self._check_usable()
        self._state = _State.RELEASED
        return self.data

    def invalidate(self) -> None:
        """Mark a device value dead once the binding that produced it is gone."""
        self._state = _State.INVALIDATED
        self.data = None

    def numpy(self) -> np.ndarray:
        """
        Read the tensor into a host array.

        For device values produced by the engine this is an explicit
        device-to-host copy. Caller-owned device buffers cannot be read here.
        """
        if self._state is _State.INVALIDATED:
            raise AlreadyDisposedError()
        if not self.is_tensor:
            raise TypeMismatchError(
                "non-tensor value has no array form", tensor_name=self.name
            )
        if isinstance(self.data, np.ndarray):
            return self.data
        if isinstance(self.data, DeviceBuffer):
            raise TypeMismatchError(
                "caller-owned device buffer cannot be read on the host",
                tensor_name=self.name,
                received=str(self.location),
            )
        return self.data.numpy()

    def __repr__(self) -> str:
        dtype = (
            element_type_to_name(self.element_type)
            if self.element_type is not None
            else "none"
        )
        return (
            f"TensorValue(name={self.name!r}, dtype={dtype}, shape={self.shape}, "
            f"location={self.location}, ownership={self.ownership.name})"
        )
