# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Session and Run Options

Plain configuration records, validated before any native call. The engine
adapter translates them into its own option objects.

Example:
    options = SessionOptions(
        execution_providers=["cuda", "cpu"],
        graph_optimization_level="all",
        preferred_output_location={"logits": "cuda", "hidden": "cuda"},
    )
    session.load("model.onnx", options)
"""

from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional, Union

from ..backends.registry import get_registry
from ..errors import InvalidArgumentError

GRAPH_OPTIMIZATION_LEVELS = ("disabled", "basic", "extended", "all")
EXECUTION_MODES = ("sequential", "parallel")

# A provider entry: "cuda" or ("cuda", {"device_id": 0})
ProviderEntry = Union[str, tuple[str, dict]]
PreferredLocation = Union[None, str, Mapping[str, str]]


def _check_int(name: str, value, minimum: int = 0, maximum: Optional[int] = None):
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(
            f"'{name}' must be an integer",
            parameter=name,
            received=repr(value),
        )
    if value < minimum or (maximum is not None and value > maximum):
        bound = f">= {minimum}" if maximum is None else f"in [{minimum}, {maximum}]"
        raise InvalidArgumentError(
            f"'{name}' must be {bound}",
            parameter=name,
            received=str(value),
        )


def _check_bool(name: str, value):
    if value is not None and not isinstance(value, bool):
        raise InvalidArgumentError(
            f"'{name}' must be a boolean",
            parameter=name,
            received=repr(value),
        )


def _check_choice(name: str, value, choices: tuple):
    if value is not None and value not in choices:
        raise InvalidArgumentError(
            f"'{name}' must be one of {', '.join(choices)}",
            parameter=name,
            received=repr(value),
        )


def _flatten_entries(entries: Mapping, prefix: str = "") -> dict[str, str]:
    """Flatten nested config entries into dotted keys: {"a": {"b": 1}} -> {"a.b": "1"}."""
    flat = {}
    for key, value in entries.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten_entries(value, f"{full_key}."))
        elif isinstance(value, bool):
            flat[full_key] = "1" if value else "0"
        else:
            flat[full_key] = str(value)
    return flat


def _from_mapping(cls, data: Mapping):
    if not isinstance(data, Mapping):
        raise InvalidArgumentError(
            f"{cls.__name__} must be built from a mapping",
            parameter=cls.__name__,
            received=type(data).__name__,
        )
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise InvalidArgumentError(
            f"unknown {cls.__name__} field(s): {', '.join(unknown)}",
            parameter=cls.__name__,
            expected=", ".join(sorted(known)),
        )
    return cls(**data)


@dataclass
class SessionOptions:
    """
    Options record for InferenceSession.load().

    Attributes:
        execution_providers: Backend names in priority order, optionally
            paired with provider options
        graph_optimization_level: "disabled", "basic", "extended" or "all"
        intra_op_num_threads: Threads inside one operator (0 = engine default)
        inter_op_num_threads: Threads across operators (0 = engine default)
        execution_mode: "sequential" or "parallel"
        enable_cpu_mem_arena: Use the CPU memory arena
        enable_mem_pattern: Pre-plan memory from the first run
        enable_profiling: Accumulate a profiling trace from load on
        profile_file_prefix: Prefix of the profiling trace file
        optimized_model_filepath: Where to write the optimized graph
        log_id: Identifier used in engine log lines
        log_severity_level: Engine log severity (0=verbose .. 4=fatal)
        log_verbosity_level: Engine verbose log level
        free_dimension_overrides: Symbolic dimension name -> fixed size
        extra: Engine session config entries, nested dicts use dotted keys
        preferred_output_location: A location token for every output, or a
            mapping output name -> location token
    """

    execution_providers: list[ProviderEntry] = field(default_factory=list)
    graph_optimization_level: Optional[str] = None
    intra_op_num_threads: Optional[int] = None
    inter_op_num_threads: Optional[int] = None
    execution_mode: Optional[str] = None
    enable_cpu_mem_arena: Optional[bool] = None
    enable_mem_pattern: Optional[bool] = None
    enable_profiling: bool = False
    profile_file_prefix: Optional[str] = None
    optimized_model_filepath: Optional[str] = None
    log_id: Optional[str] = None
    log_severity_level: Optional[int] = None
    log_verbosity_level: Optional[int] = None
    free_dimension_overrides: dict[str, int] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)
    preferred_output_location: PreferredLocation = None

    @classmethod
    def from_dict(cls, data: Mapping) -> "SessionOptions":
        """Build options from a mapping of field names; unknown keys are rejected."""
        options = _from_mapping(cls, data)
        options.validate()
        return options

    def validate(self) -> None:
        """
        Check every field's type and range.

        Raises:
            InvalidArgumentError: On the first invalid field.
        """
        _check_choice(
            "graph_optimization_level",
            self.graph_optimization_level,
            GRAPH_OPTIMIZATION_LEVELS,
        )
        _check_choice("execution_mode", self.execution_mode, EXECUTION_MODES)
        _check_int("intra_op_num_threads", self.intra_op_num_threads)
        _check_int("inter_op_num_threads", self.inter_op_num_threads)
        _check_int("log_severity_level", self.log_severity_level, 0, 4)
        _check_int("log_verbosity_level", self.log_verbosity_level)
        _check_bool("enable_cpu_mem_arena", self.enable_cpu_mem_arena)
        _check_bool("enable_mem_pattern", self.enable_mem_pattern)
        _check_bool("enable_profiling", self.enable_profiling)

        for key in ("profile_file_prefix", "optimized_model_filepath", "log_id"):
            value = getattr(self, key)
            if value is not None and not isinstance(value, str):
                raise InvalidArgumentError(
                    f"'{key}' must be a string", parameter=key, received=repr(value)
                )

        if not isinstance(self.free_dimension_overrides, Mapping):
            raise InvalidArgumentError(
                "'free_dimension_overrides' must be a mapping",
                parameter="free_dimension_overrides",
            )
        for dim_name, size in self.free_dimension_overrides.items():
            _check_int(f"free_dimension_overrides[{dim_name}]", size)

        if not isinstance(self.extra, Mapping):
            raise InvalidArgumentError(
                "'extra' must be a mapping", parameter="extra"
            )

        pol = self.preferred_output_location
        if pol is not None and not isinstance(pol, (str, Mapping)):
            raise InvalidArgumentError(
                "'preferred_output_location' must be a string or a mapping",
                parameter="preferred_output_location",
                received=type(pol).__name__,
            )

        self.resolved_providers()

    def resolved_providers(self) -> list[tuple[str, dict]]:
        """
        Execution providers as (engine provider name, provider options).

        Raises:
            InvalidArgumentError: For malformed entries or unknown names.
        """
        if not isinstance(self.execution_providers, (list, tuple)):
            raise InvalidArgumentError(
                "'execution_providers' must be a list",
                parameter="execution_providers",
                received=type(self.execution_providers).__name__,
            )

        registry = get_registry()
        resolved = []
        for entry in self.execution_providers:
            if isinstance(entry, str):
                name, provider_options = entry, {}
            elif (
                isinstance(entry, (tuple, list))
                and len(entry) == 2
                and isinstance(entry[0], str)
                and isinstance(entry[1], Mapping)
            ):
                name, provider_options = entry[0], dict(entry[1])
            else:
                raise InvalidArgumentError(
                    "execution provider entries must be a name or (name, options)",
                    parameter="execution_providers",
                    received=repr(entry),
                )
            resolved.append((registry.resolve_provider(name), provider_options))
        return resolved

    def config_entries(self) -> dict[str, str]:
        """Flattened engine session config entries from ``extra``."""
        return _flatten_entries(self.extra)


@dataclass
class RunOptions:
    """
    Options record for a single InferenceSession.run() call.

    Attributes:
        tag: Label attached to engine log lines of this run
        log_severity_level: Engine log severity for this run (0-4)
        log_verbosity_level: Engine verbose log level for this run
        terminate: Cooperative cancellation flag honored by the engine
    """

    tag: Optional[str] = None
    log_severity_level: Optional[int] = None
    log_verbosity_level: Optional[int] = None
    terminate: bool = False

    @classmethod
    def from_dict(cls, data: Mapping) -> "RunOptions":
        options = _from_mapping(cls, data)
        options.validate()
        return options

    def validate(self) -> None:
        if self.tag is not None and not isinstance(self.tag, str):
            raise InvalidArgumentError(
                "'tag' must be a string", parameter="tag", received=repr(self.tag)
            )
        _check_int("log_severity_level", self.log_severity_level, 0, 4)
        _check_int("log_verbosity_level", self.log_verbosity_level)
        _check_bool("terminate", self.terminate)


def coerce_session_options(options) -> SessionOptions:
    """Accept None, a SessionOptions or a mapping at the load() boundary."""
    if options is None:
        return SessionOptions()
    if isinstance(options, SessionOptions):
        options.validate()
        return options
    if isinstance(options, Mapping):
        return SessionOptions.from_dict(options)
    raise InvalidArgumentError(
        "options must be a SessionOptions or a mapping",
        parameter="options",
        received=type(options).__name__,
    )


def coerce_run_options(options) -> Optional[RunOptions]:
    """Accept None, a RunOptions or a mapping at the run() boundary."""
    if options is None:
        return None
    if isinstance(options, RunOptions):
        options.validate()
        return options
    if isinstance(options, Mapping):
        return RunOptions.from_dict(options)
    raise InvalidArgumentError(
        "'run_options' must be a RunOptions or a mapping",
        parameter="run_options",
        received=type(options).__name__,
    )
