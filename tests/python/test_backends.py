# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tests for the execution provider registry.
"""

from dataclasses import fields
from unittest.mock import MagicMock

import pytest

from inferra.backends import (
    BackendInfo,
    BackendRegistry,
    BackendSpec,
    get_registry,
    list_supported_backends,
)
from inferra.errors import InvalidArgumentError


class TestBackendRegistry:
    """Tests for BackendRegistry."""

    def test_singleton(self):
        assert BackendRegistry() is BackendRegistry()
        assert get_registry() is BackendRegistry()

    def test_builtin_table(self):
        registry = get_registry()
        assert registry.get("cuda").bundled is False
        assert registry.get("dml").bundled is True
        assert registry.get("cpu").provider == "CPUExecutionProvider"

    def test_table_entry_fields(self):
        """A table entry is a name, a provider and a bundled flag."""
        assert [f.name for f in fields(BackendSpec)] == ["name", "provider", "bundled"]
        assert get_registry().get("rocm") == BackendSpec("rocm", "ROCMExecutionProvider", False)

    def test_lookup_by_provider(self):
        assert get_registry().get("TensorrtExecutionProvider").name == "tensorrt"

    def test_unknown_provider(self):
        with pytest.raises(InvalidArgumentError):
            get_registry().resolve_provider("npu")

    def test_register_backend(self):
        registry = get_registry()
        registry.register_backend(BackendSpec("openvino", "OpenVINOExecutionProvider", bundled=False))
        assert registry.resolve_provider("openvino") == "OpenVINOExecutionProvider"

    def test_reset(self):
        registry = get_registry()
        registry.register_backend(BackendSpec("openvino", "OpenVINOExecutionProvider", bundled=False))
        BackendRegistry.reset()
        assert get_registry().get("openvino") is None


class TestListSupportedBackends:
    """Tests for list_supported_backends."""

    def test_intersects_with_engine(self):
        engine = MagicMock()
        engine.available_providers.return_value = [
            "CUDAExecutionProvider",
            "CPUExecutionProvider",
            "AzureExecutionProvider",
        ]
        backends = list_supported_backends(engine)
        assert backends == [BackendInfo("cpu", True), BackendInfo("cuda", False)]

    def test_cpu_always_first(self):
        engine = MagicMock()
        engine.available_providers.return_value = []
        assert list_supported_backends(engine) == [BackendInfo("cpu", True)]

    def test_default_engine(self, fake_engine):
        """Without an argument the process engine is queried."""
        fake_engine.providers = ["CPUExecutionProvider", "DmlExecutionProvider"]
        names = [b.name for b in list_supported_backends()]
        assert names == ["cpu", "dml"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
