# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tests for the process-wide engine environment.
"""

import threading

import pytest

from inferra.engine.environment import (
    DEFAULT_LOG_SEVERITY,
    EngineEnvironment,
    get_engine,
    get_environment,
    initialize_environment,
)


class TestEngineEnvironment:
    """Tests for EngineEnvironment."""

    def test_singleton(self, fake_engine):
        assert get_environment() is get_environment()
        assert get_engine() is fake_engine

    def test_initialize_once(self, fake_engine):
        assert initialize_environment(log_level=3) is True
        assert initialize_environment(log_level=0) is False
        assert fake_engine.calls == [("initialize", 3)]
        assert get_environment().initialized

    def test_default_severity(self, fake_engine, monkeypatch):
        monkeypatch.delenv("INFERRA_LOG_SEVERITY", raising=False)
        initialize_environment()
        assert fake_engine.calls == [("initialize", DEFAULT_LOG_SEVERITY)]

    def test_severity_from_environment(self, fake_engine, monkeypatch):
        monkeypatch.setenv("INFERRA_LOG_SEVERITY", "9")
        initialize_environment()
        assert fake_engine.calls == [("initialize", 4)]

    def test_invalid_severity_falls_back(self, fake_engine, monkeypatch):
        monkeypatch.setenv("INFERRA_LOG_SEVERITY", "verbose")
        initialize_environment()
        assert fake_engine.calls == [("initialize", DEFAULT_LOG_SEVERITY)]

    def test_concurrent_initialize(self, fake_engine):
        """Only one of many racing callers performs the initialization."""
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(initialize_environment())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert len(fake_engine.calls) == 1

    def test_reset_replaces_instance(self, fake_engine):
        before = get_environment()
        EngineEnvironment.reset(fake_engine)
        assert get_environment() is not before


class TestOrtEngine:
    """The default engine is onnxruntime."""

    def test_default_engine_is_onnxruntime(self):
        pytest.importorskip("onnxruntime")
        engine = get_engine()
        assert engine.name == "onnxruntime"
        assert "CPUExecutionProvider" in engine.available_providers()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
