# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tests for the output memory location resolver.
"""

import pytest

from inferra.core.types import DEFAULT_CPU, MemoryLocation
from inferra.errors import ConfigurationError
from inferra.runtime.locations import requires_binding, resolve_output_locations

CUDA = MemoryLocation("cuda", 0)


class TestResolveOutputLocations:
    """Tests for resolve_output_locations."""

    def test_none_is_all_cpu(self):
        locations = resolve_output_locations(["y", "z"], None)
        assert locations == (DEFAULT_CPU, DEFAULT_CPU)
        assert not requires_binding(locations)

    def test_single_token_applies_to_every_output(self):
        locations = resolve_output_locations(["y", "z"], "gpu-buffer")
        assert locations == (CUDA, CUDA)
        assert requires_binding(locations)

    def test_full_mapping(self):
        locations = resolve_output_locations(["y", "z"], {"z": "cpu", "y": "cuda:0"})
        assert locations == (CUDA, DEFAULT_CPU)
        assert requires_binding(locations)

    def test_partial_cpu_mapping_does_not_engage_binding(self):
        locations = resolve_output_locations(["y", "z"], {"y": "cpu"})
        assert locations == (DEFAULT_CPU, DEFAULT_CPU)
        assert not requires_binding(locations)

    def test_partial_device_mapping_fails(self):
        """Binding requires a location for every output."""
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_output_locations(["y", "z"], {"y": "cuda"})
        assert "missing: z" in str(exc_info.value)

    def test_unknown_output_name(self):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_output_locations(["y"], {"w": "cuda"})
        assert '"w" is not a valid output name' in str(exc_info.value)

    def test_invalid_token(self):
        with pytest.raises(ConfigurationError):
            resolve_output_locations(["y"], {"y": "tpu"})

    def test_wrong_option_type(self):
        with pytest.raises(ConfigurationError):
            resolve_output_locations(["y"], ["cuda"])

    def test_no_outputs(self):
        assert resolve_output_locations([], "cuda") == ()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
