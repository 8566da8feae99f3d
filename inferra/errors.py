# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Inferra Error Hierarchy

Every error raised by the package derives from InferraError, whose string
form is the message followed by numbered suggestions and a context block.

    InferraError
    ├── InvalidArgumentError      call shape is wrong
    ├── LifecycleError            AlreadyLoaded / NotInitialized / AlreadyDisposed
    ├── TypeMismatchError         value cannot take the declared element type
    ├── UnsupportedShapeError     ragged host value
    ├── SizeMismatchError         element count disagrees with metadata
    ├── ConfigurationError        options or output locations
    ├── EngineError               onnxruntime failure, message kept verbatim
    └── AllocationError           host or device buffer shortfall
"""

from typing import Optional


def _compact(**pairs) -> dict:
    """Context dict without the unset entries."""
    return {key: str(value) for key, value in pairs.items() if value is not None and value != ""}


class InferraError(Exception):
    """
    Base class for all Inferra errors.

    Subclasses set ``prefix`` (prepended to the message) and
    ``default_suggestions`` (used when the caller passes none).

    Attributes:
        message: Human-readable error message, prefix included
        suggestions: Ways to fix the error
        context: Key/value details for debugging
    """

    prefix = ""
    default_suggestions: tuple = ()

    def __init__(
        self,
        message: str,
        suggestions: Optional[list[str]] = None,
        context: Optional[dict] = None,
    ):
        self.message = f"{self.prefix}{message}"
        self.suggestions = list(suggestions or self.default_suggestions)
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        sections = [self.message]
        if self.suggestions:
            numbered = (f"  {n}. {text}" for n, text in enumerate(self.suggestions, 1))
            sections.append("Suggestions:\n" + "\n".join(numbered))
        if self.context:
            details = (f"  {key}: {value}" for key, value in self.context.items())
            sections.append("Context:\n" + "\n".join(details))
        return "\n\n".join(sections)


class InvalidArgumentError(InferraError):
    """
    Malformed call shape.

    Raised when load() gets neither a path nor a byte range, when run() gets
    a feed or fetch of the wrong kind, or when an options record holds a
    value of the wrong type.
    """

    prefix = "Invalid argument: "

    def __init__(
        self,
        message: str,
        parameter: Optional[str] = None,
        expected: Optional[str] = None,
        received: Optional[str] = None,
    ):
        super().__init__(
            message,
            context=_compact(parameter=parameter, expected=expected, received=received),
        )


class LifecycleError(InferraError):
    """Base class for session state violations."""

    def __init__(self, message: str, state: Optional[str] = None):
        self.state = state
        super().__init__(message, context=_compact(state=state))


class AlreadyLoadedError(LifecycleError):
    """load() on a session that already holds a model."""

    def __init__(self, state: Optional[str] = None):
        super().__init__("Model already loaded. Cannot load model multiple times.", state)


class NotInitializedError(LifecycleError):
    """Session used before a successful load()."""

    def __init__(self, state: Optional[str] = None):
        super().__init__("Session is not initialized.", state)


class AlreadyDisposedError(LifecycleError):
    """Session, or a device output it handed out, used after dispose()."""

    def __init__(self, state: Optional[str] = None):
        super().__init__("Session already disposed.", state)


class _TensorError(InferraError):
    """Conversion failure tied to a named tensor."""

    def __init__(
        self,
        message: str,
        tensor_name: Optional[str] = None,
        expected: Optional[str] = None,
        received: Optional[str] = None,
    ):
        super().__init__(
            message,
            context=_compact(tensor=tensor_name, expected=expected, received=received),
        )


class TypeMismatchError(_TensorError):
    """
    Value cannot be represented as the declared tensor type.

    Covers numpy dtype disagreements, Python values that would lose
    precision, and host values aimed at device memory.
    """

    prefix = "Type mismatch: "
    default_suggestions = (
        "Cast the value explicitly to the declared element type",
        "Check the session's input metadata for the expected type",
    )


class UnsupportedShapeError(_TensorError):
    """Ragged or otherwise non-rectangular host value."""

    prefix = "Unsupported shape: "


class SizeMismatchError(_TensorError):
    """Shape or element count disagrees with the tensor metadata."""

    prefix = "Size mismatch: "


class ConfigurationError(InferraError):
    """
    Bad session configuration.

    Raised for output locations that name unknown outputs, that engage
    I/O binding without covering every output, or that cannot be parsed.
    """

    prefix = "Configuration error: "
    default_suggestions = (
        "Check the session options",
        "Compare preferred output locations against the model's output names",
    )

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[str] = None,
    ):
        super().__init__(
            message, context=_compact(config_key=config_key, config_value=config_value)
        )


class EngineError(InferraError):
    """
    onnxruntime failure.

    ``engine_message`` holds the engine's text unchanged; it is also the
    first line of ``str(error)``.
    """

    def __init__(self, engine_message: str, operation: Optional[str] = None):
        self.engine_message = engine_message
        self.operation = operation
        super().__init__(engine_message, context=_compact(operation=operation))


class AllocationError(InferraError):
    """Host or device buffer could not be allocated."""

    prefix = "Memory error: "
    default_suggestions = (
        "Reduce batch size",
        "Release outputs from previous runs before running again",
    )

    def __init__(
        self,
        message: str,
        requested_bytes: Optional[int] = None,
        device: Optional[str] = None,
    ):
        requested_mb = None
        if requested_bytes is not None:
            requested_mb = f"{requested_bytes / (1024 * 1024):.2f}"
        super().__init__(message, context=_compact(requested_mb=requested_mb, device=device))


def format_dtype_mismatch(
    expected_dtype: str,
    actual_dtype: str,
    tensor_name: Optional[str] = None,
) -> TypeMismatchError:
    """TypeMismatchError for a value whose dtype is not the declared one."""
    return TypeMismatchError(
        f"expected {expected_dtype}, got {actual_dtype}",
        tensor_name=tensor_name,
        expected=expected_dtype,
        received=actual_dtype,
    )
