# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Run Metrics for Inferra

Each InferenceSession owns a MetricsCollector. Completed runs add a latency
sample and bump the counters; failed runs only bump the error counter.
Latency statistics are taken over the most recent ``window`` samples.

Example:
    session.run({"x": x})
    print(session.metrics.get_summary()["latency_p50_ms"])
"""

import threading
from collections import deque
from dataclasses import dataclass
from typing import Optional

import numpy as np

QUANTILES = (50, 90, 99)


@dataclass
class RunMetrics:
    """
    One completed run.

    Attributes:
        latency_ms: Wall time of the run, marshaling included
        num_inputs: Inputs fed after schema filtering
        num_outputs: Outputs fetched after schema filtering
        io_binding: Whether the run went through I/O binding
    """

    latency_ms: float
    num_inputs: int = 0
    num_outputs: int = 0
    io_binding: bool = False


class MetricsCollector:
    """
    Thread-safe run counters plus a sliding latency window.

    Example:
        collector = MetricsCollector("session-1")
        collector.record_run(RunMetrics(latency_ms=1.5, num_inputs=1, num_outputs=1))
        collector.get_summary()["total_runs"]  # 1
    """

    def __init__(self, session_id: Optional[str] = None, window: int = 10000):
        self.session_id = session_id
        self._lock = threading.Lock()
        self._latencies: deque = deque(maxlen=window)
        self._counters = self._zeroed()

    @staticmethod
    def _zeroed() -> dict:
        return {
            "total_runs": 0,
            "bound_runs": 0,
            "error_count": 0,
            "inputs_fed": 0,
            "outputs_fetched": 0,
        }

    def record_run(self, metrics: RunMetrics) -> None:
        with self._lock:
            self._latencies.append(metrics.latency_ms)
            self._counters["total_runs"] += 1
            self._counters["bound_runs"] += int(metrics.io_binding)
            self._counters["inputs_fed"] += metrics.num_inputs
            self._counters["outputs_fetched"] += metrics.num_outputs

    def record_error(self) -> None:
        with self._lock:
            self._counters["error_count"] += 1

    def get_summary(self) -> dict:
        """
        Counters, plus latency mean/min/max and p50/p90/p99 once a run
        has completed.
        """
        with self._lock:
            summary = dict(self._counters)
            samples = np.fromiter(self._latencies, dtype=np.float64)

        if samples.size:
            summary["latency_mean_ms"] = float(samples.mean())
            summary["latency_min_ms"] = float(samples.min())
            summary["latency_max_ms"] = float(samples.max())
            for q, value in zip(QUANTILES, np.percentile(samples, QUANTILES)):
                summary[f"latency_p{q}_ms"] = float(value)
        return summary

    def reset(self) -> None:
        with self._lock:
            self._latencies.clear()
            self._counters = self._zeroed()

    def _labels(self, **extra) -> str:
        labels = {"session": self.session_id} if self.session_id else {}
        labels.update(extra)
        if not labels:
            return ""
        return "{" + ",".join(f'{key}="{value}"' for key, value in labels.items()) + "}"

    def export_prometheus(self) -> str:
        """
        Prometheus text exposition of this session's runs.

        Returns an empty string before the first completed run.
        """
        summary = self.get_summary()
        if not summary["total_runs"]:
            return ""

        lines = []
        for name, key, help_text in (
            ("inferra_runs_total", "total_runs", "Completed runs"),
            ("inferra_bound_runs_total", "bound_runs", "Completed runs that used I/O binding"),
            ("inferra_run_errors_total", "error_count", "Failed runs"),
        ):
            lines += [
                f"# HELP {name} {help_text}",
                f"# TYPE {name} counter",
                f"{name}{self._labels()} {summary[key]}",
            ]

        lines += [
            "# HELP inferra_run_latency_ms Run latency",
            "# TYPE inferra_run_latency_ms summary",
        ]
        for q in QUANTILES:
            labels = self._labels(quantile=f"{q / 100:.2f}")
            lines.append(f"inferra_run_latency_ms{labels} {summary[f'latency_p{q}_ms']:.3f}")
        return "\n".join(lines)
