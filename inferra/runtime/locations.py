# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Memory Location Resolver

Turns the preferred_output_location option into one MemoryLocation per
declared output. I/O binding is engaged when any output lands outside
Default-CPU, and then every output must be placed explicitly.
"""

from typing import Mapping, Sequence

from ..core.types import DEFAULT_CPU, MemoryLocation
from ..errors import ConfigurationError


def resolve_output_locations(
    output_names: Sequence[str], preferred
) -> tuple[MemoryLocation, ...]:
    """
    Resolve a location for every output, in output order.

    Args:
        output_names: Declared output names from the schema cache.
        preferred: None, a single location token applied to every output,
            or a mapping output name -> location token.

    Returns:
        Tuple of MemoryLocation parallel to output_names.

    Raises:
        ConfigurationError: If a mapping names an unknown output, a token is
            invalid, or a mapping engages binding without covering every
            output.

    Example:
        >>> resolve_output_locations(["y", "z"], "cuda")
        (MemoryLocation(space='cuda', device_id=0), MemoryLocation(space='cuda', device_id=0))
    """
    if preferred is None:
        return tuple(DEFAULT_CPU for _ in output_names)

    if isinstance(preferred, (str, MemoryLocation)):
        location = MemoryLocation.parse(preferred)
        return tuple(location for _ in output_names)

    if not isinstance(preferred, Mapping):
        raise ConfigurationError(
            "preferred output location must be a token or a mapping",
            config_key="preferred_output_location",
            config_value=type(preferred).__name__,
        )

    known = set(output_names)
    overrides = {}
    for name, token in preferred.items():
        if name not in known:
            raise ConfigurationError(
                f'"{name}" is not a valid output name',
                config_key="preferred_output_location",
                config_value=name,
            )
        overrides[name] = MemoryLocation.parse(token)

    locations = tuple(overrides.get(name, DEFAULT_CPU) for name in output_names)
    if requires_binding(locations) and len(overrides) != len(output_names):
        missing = [name for name in output_names if name not in overrides]
        raise ConfigurationError(
            "preferred output locations must cover every output when any output "
            f"is placed outside cpu; missing: {', '.join(missing)}",
            config_key="preferred_output_location",
        )
    return locations


def requires_binding(locations: Sequence[MemoryLocation]) -> bool:
    """True if any output is placed outside Default-CPU."""
    return any(not location.is_default for location in locations)
