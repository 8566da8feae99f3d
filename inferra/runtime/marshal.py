# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tensor Marshal - host values <-> native tensor values.

Handles:
1. Exact element type conversion (no implicit narrowing or widening)
2. Zero-copy aliasing of contiguous host arrays
3. UTF-8 string tensors
4. Caller-owned device buffers (no implicit host<->device copies)
5. Structural conversion of non-tensor results (sequences, maps)

Every result states its ownership:
- OWNED_BY_CALLER: aliases memory the caller handed in
- OWNED_BY_SESSION: a copy made during conversion
- OWNED_BY_DEVICE_POOL: device memory owned by the engine allocator
"""

import sys
from collections.abc import Mapping
from typing import Any, Optional, Union

import numpy as np

from ..core.tensor import DeviceBuffer, TensorDescriptor, TensorValue
from ..core.types import (
    ElementType,
    MemoryLocation,
    Ownership,
    element_type_from_name,
    element_type_from_numpy,
    element_type_to_name,
    element_type_to_numpy,
)
from ..errors import (
    AllocationError,
    InvalidArgumentError,
    SizeMismatchError,
    TypeMismatchError,
    UnsupportedShapeError,
    format_dtype_mismatch,
)
from ..observability import get_logger

Declared = Union[TensorDescriptor, ElementType, None]

_TORCH_DTYPE_NAMES = {
    "float32": "float",
    "float": "float",
    "float64": "double",
    "double": "double",
    "float16": "float16",
    "half": "float16",
    "bfloat16": "bfloat16",
    "int8": "int8",
    "int16": "int16",
    "int32": "int32",
    "int64": "int64",
    "uint8": "uint8",
    "bool": "bool",
    "complex64": "complex64",
    "complex128": "complex128",
}


def _type_label(element_type: Optional[ElementType]) -> str:
    return element_type_to_name(element_type) if element_type is not None else "any"


class TensorMarshal:
    """
    Bidirectional converter between host values and TensorValue.

    Example:
        marshal = TensorMarshal()
        value = marshal.to_native([1, 2, 3], ElementType.Float32)
        marshal.to_host(value)  # array([1., 2., 3.], dtype=float32)
    """

    def __init__(self):
        self._logger = get_logger().bind(component="marshal")

    # ------------------------------------------------------------------
    # host -> native
    # ------------------------------------------------------------------

    def to_native(
        self,
        value: Any,
        declared: Declared = None,
        target: Optional[MemoryLocation] = None,
        name: Optional[str] = None,
    ) -> TensorValue:
        """
        Convert a host value into a TensorValue.

        Args:
            value: numpy array, Python scalar/list, str, torch tensor,
                DeviceBuffer or TensorValue. Non-tensor declared types take
                nested lists/dicts.
            declared: Declared descriptor or element type, if known.
            target: Memory space the value must live in. None means "where
                the value already lives" (host values go to Default-CPU).
            name: Tensor name used in error messages.

        Raises:
            TypeMismatchError: Element type differs from the declared type,
                a Python value does not convert exactly, or a host value
                targets a device space.
            UnsupportedShapeError: Ragged nested lists.
            SizeMismatchError: Shape disagrees with concrete declared dims.
            AllocationError: A required host copy could not be allocated.
        """
        descriptor = declared if isinstance(declared, TensorDescriptor) else None
        element_type = (
            descriptor.element_type if descriptor is not None else declared
        )
        name = name or (descriptor.name if descriptor is not None else None)

        if descriptor is not None and not descriptor.is_tensor:
            return self._non_tensor(value, target, name)

        if isinstance(value, TensorValue):
            return self._check_tensor_value(value, element_type, target, name)

        torch = sys.modules.get("torch")
        if torch is not None and isinstance(value, torch.Tensor):
            value = self._from_torch(value, name)

        if isinstance(value, DeviceBuffer):
            return self._from_device_buffer(value, element_type, target, name)

        if target is not None and not target.is_default:
            raise TypeMismatchError(
                f"host value cannot be placed in {target} without an explicit copy",
                tensor_name=name,
                expected=str(target),
                received="cpu",
            )

        from_python = not isinstance(value, (np.ndarray, np.generic))
        if from_python:
            result = self._from_python(value, element_type, name)
        else:
            result = self._from_array(np.asarray(value), element_type, name)

        if descriptor is not None:
            result = self._fit_shape(result, descriptor, from_python)
        return result

    def _non_tensor(self, value, target, name) -> TensorValue:
        if target is not None and not target.is_default:
            raise TypeMismatchError(
                "non-tensor values only live in cpu memory",
                tensor_name=name,
                received=str(target),
            )
        if isinstance(value, TensorValue):
            value = value.release()
        return TensorValue(
            data=value,
            is_tensor=False,
            ownership=Ownership.OWNED_BY_CALLER,
            name=name,
        )

    def _check_tensor_value(
        self,
        value: TensorValue,
        element_type: Optional[ElementType],
        target: Optional[MemoryLocation],
        name: Optional[str],
    ) -> TensorValue:
        value._check_usable()
        if target is not None and value.location != target:
            raise TypeMismatchError(
                f"value lives in {value.location}, expected {target}",
                tensor_name=name,
                expected=str(target),
                received=str(value.location),
            )
        if element_type is not None and value.element_type not in (None, element_type):
            raise format_dtype_mismatch(
                _type_label(element_type), _type_label(value.element_type), name
            )
        if value.name is None:
            value.name = name
        return value

    def _from_torch(self, tensor, name: Optional[str]):
        dtype_name = str(tensor.dtype).replace("torch.", "")
        engine_name = _TORCH_DTYPE_NAMES.get(dtype_name)
        if engine_name is None:
            raise TypeMismatchError(
                f"torch dtype {tensor.dtype} has no tensor element type",
                tensor_name=name,
                received=str(tensor.dtype),
            )
        element_type = element_type_from_name(engine_name)

        if tensor.is_cuda:
            if not tensor.is_contiguous():
                raise UnsupportedShapeError(
                    "device tensors must be contiguous; call .contiguous() first",
                    tensor_name=name,
                )
            return DeviceBuffer(
                ptr=tensor.data_ptr(),
                element_type=element_type,
                shape=tuple(tensor.shape),
                location=MemoryLocation("cuda", tensor.device.index or 0),
                owner=tensor,
            )

        if element_type is ElementType.BFloat16:
            raise TypeMismatchError(
                "bfloat16 cpu tensors have no host array form",
                tensor_name=name,
                received=str(tensor.dtype),
            )
        # shares memory with the torch tensor
        return tensor.detach().numpy()

    def _from_device_buffer(
        self,
        buffer: DeviceBuffer,
        element_type: Optional[ElementType],
        target: Optional[MemoryLocation],
        name: Optional[str],
    ) -> TensorValue:
        if target is not None and buffer.location != target:
            raise TypeMismatchError(
                f"device buffer lives in {buffer.location}, expected {target}",
                tensor_name=name,
                expected=str(target),
                received=str(buffer.location),
            )
        if element_type is not None and buffer.element_type != element_type:
            raise format_dtype_mismatch(
                _type_label(element_type), _type_label(buffer.element_type), name
            )
        return TensorValue(
            data=buffer,
            element_type=buffer.element_type,
            shape=tuple(buffer.shape),
            location=buffer.location,
            ownership=Ownership.OWNED_BY_CALLER,
            name=name,
        )

    def _from_array(
        self, array: np.ndarray, element_type: Optional[ElementType], name
    ) -> TensorValue:
        if array.dtype.kind in ("U", "S", "O"):
            if element_type not in (None, ElementType.String):
                raise format_dtype_mismatch(
                    _type_label(element_type), "string", name
                )
            return self._string_tensor(array, name)

        try:
            actual = element_type_from_numpy(array.dtype)
        except InvalidArgumentError:
            raise TypeMismatchError(
                f"numpy dtype {array.dtype} has no tensor element type",
                tensor_name=name,
                received=str(array.dtype),
            ) from None
        if element_type is not None and actual != element_type:
            raise format_dtype_mismatch(
                _type_label(element_type), _type_label(actual), name
            )

        ownership = Ownership.OWNED_BY_CALLER
        if not array.flags.c_contiguous:
            try:
                array = np.ascontiguousarray(array)
            except MemoryError:
                raise AllocationError(
                    f"cannot copy non-contiguous input '{name}'",
                    requested_bytes=array.nbytes,
                    device="cpu",
                ) from None
            ownership = Ownership.OWNED_BY_SESSION
            self._logger.debug(
                "Copied non-contiguous input",
                tensor=name,
                shape=array.shape,
            )

        return TensorValue(
            data=array,
            element_type=actual,
            shape=tuple(array.shape),
            ownership=ownership,
            name=name,
        )

    def _from_python(
        self, value: Any, element_type: Optional[ElementType], name
    ) -> TensorValue:
        if isinstance(value, Mapping) or value is None:
            raise TypeMismatchError(
                f"cannot convert {type(value).__name__} to a tensor",
                tensor_name=name,
                expected=_type_label(element_type),
                received=type(value).__name__,
            )
        try:
            inferred = np.array(value)
        except ValueError as e:
            raise UnsupportedShapeError(str(e), tensor_name=name) from None

        if inferred.dtype.kind == "O" and not self._all_text(inferred):
            if any(isinstance(v, (list, tuple, np.ndarray)) for v in inferred.flat):
                raise UnsupportedShapeError(
                    "nested sequences must be rectangular", tensor_name=name
                )
            received = sorted({type(v).__name__ for v in inferred.flat})
            raise TypeMismatchError(
                "values have no exact numpy representation",
                tensor_name=name,
                expected=_type_label(element_type),
                received=", ".join(received),
            )

        if inferred.dtype.kind in ("U", "S", "O"):
            if element_type not in (None, ElementType.String):
                raise format_dtype_mismatch(
                    _type_label(element_type), "string", name
                )
            # numpy stringifies numbers mixed into a text list
            leaves = np.array(value, dtype=object)
            if not self._all_text(leaves):
                received = sorted({type(v).__name__ for v in leaves.flat})
                raise format_dtype_mismatch("string", ", ".join(received), name)
            return self._string_tensor(leaves, name)

        if element_type is ElementType.String:
            raise format_dtype_mismatch("string", str(inferred.dtype), name)

        if element_type is not None:
            target_dtype = element_type_to_numpy(element_type)
            if target_dtype is None:
                raise TypeMismatchError(
                    f"{_type_label(element_type)} values cannot be built from Python data",
                    tensor_name=name,
                    expected=_type_label(element_type),
                )
            inferred = self._exact_cast(inferred, target_dtype, name)

        return TensorValue(
            data=inferred,
            element_type=element_type_from_numpy(inferred.dtype),
            shape=tuple(inferred.shape),
            ownership=Ownership.OWNED_BY_SESSION,
            name=name,
        )

    @staticmethod
    def _all_text(array: np.ndarray) -> bool:
        return all(isinstance(v, (str, bytes)) for v in array.flat)

    @staticmethod
    def _exact_cast(array: np.ndarray, dtype: np.dtype, name) -> np.ndarray:
        if array.dtype == dtype:
            return array
        with np.errstate(all="ignore"):
            converted = array.astype(dtype)
            back = converted.astype(array.dtype)
        equal_nan = array.dtype.kind in ("f", "c")
        if not np.array_equal(back, array, equal_nan=equal_nan):
            raise TypeMismatchError(
                f"values do not convert exactly from {array.dtype} to {dtype}",
                tensor_name=name,
                expected=str(dtype),
                received=str(array.dtype),
            )
        return converted

    @staticmethod
    def _string_tensor(array: np.ndarray, name) -> TensorValue:
        out = np.empty(array.shape, dtype=object)
        for index, item in np.ndenumerate(array):
            if isinstance(item, bytes):
                try:
                    item = item.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise TypeMismatchError(
                        f"string element is not valid UTF-8: {e}",
                        tensor_name=name,
                    ) from None
            elif not isinstance(item, str):
                raise format_dtype_mismatch("string", type(item).__name__, name)
            out[index] = item
        return TensorValue(
            data=out,
            element_type=ElementType.String,
            shape=tuple(out.shape),
            ownership=Ownership.OWNED_BY_SESSION,
            name=name,
        )

    @staticmethod
    def _fit_shape(
        value: TensorValue, descriptor: TensorDescriptor, from_python: bool
    ) -> TensorValue:
        """
        Check a host tensor against the declared dims.

        Flat Python sequences are reshaped to a fully concrete declared
        shape when the element counts agree.
        """
        declared = descriptor.shape
        if declared is None:
            return value
        shape = value.shape
        concrete = all(isinstance(d, int) for d in declared)

        if from_python and concrete and shape != declared:
            expected = int(np.prod(declared, dtype=np.int64))
            if value.data.size != expected:
                raise SizeMismatchError(
                    f"{value.data.size} elements cannot fill shape {list(declared)}",
                    tensor_name=value.name,
                    expected=str(list(declared)),
                    received=str(list(shape)),
                )
            value.data = value.data.reshape(declared)
            value.shape = tuple(declared)
            return value

        if len(shape) != len(declared) or any(
            isinstance(d, int) and d != s for d, s in zip(declared, shape)
        ):
            raise SizeMismatchError(
                f"shape {list(shape)} does not match declared {list(declared)}",
                tensor_name=value.name,
                expected=str(list(declared)),
                received=str(list(shape)),
            )
        return value

    # ------------------------------------------------------------------
    # native -> host
    # ------------------------------------------------------------------

    def to_host(self, value: TensorValue) -> Any:
        """
        Convert a TensorValue back to a host value.

        - CPU tensors become numpy arrays; the TensorValue is released and
          cannot be converted again.
        - Device tensors are returned as TensorValue handles owned by the
          device pool; call .numpy() to copy to the host explicitly.
        - Non-tensor values are converted element-wise.
        """
        if value.is_device:
            value._check_usable()
            return value

        data = value.release()
        if not value.is_tensor:
            return self._structure_to_host(data)
        if isinstance(data, np.ndarray):
            return data
        return data.numpy()

    def _structure_to_host(self, obj: Any) -> Any:
        if isinstance(obj, TensorValue):
            return self.to_host(obj)
        if isinstance(obj, np.ndarray):
            return obj
        if isinstance(obj, Mapping):
            return {key: self._structure_to_host(item) for key, item in obj.items()}
        if isinstance(obj, (list, tuple)):
            return [self._structure_to_host(item) for item in obj]
        if hasattr(obj, "numpy"):
            return obj.numpy()
        return obj


_DEFAULT_MARSHAL: Optional[TensorMarshal] = None


def get_marshal() -> TensorMarshal:
    """Get the shared TensorMarshal."""
    global _DEFAULT_MARSHAL
    if _DEFAULT_MARSHAL is None:
        _DEFAULT_MARSHAL = TensorMarshal()
    return _DEFAULT_MARSHAL


def to_native(value, declared: Declared = None, target=None, name=None) -> TensorValue:
    """Module-level shortcut for TensorMarshal.to_native()."""
    return get_marshal().to_native(value, declared, target, name)


def to_host(value: TensorValue) -> Any:
    """Module-level shortcut for TensorMarshal.to_host()."""
    return get_marshal().to_host(value)
