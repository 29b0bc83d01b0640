"""Timing instrumentation for the extraction pipeline.

``@profile_operation(name)`` wraps a pipeline stage with a
``perf_counter_ns`` timer.  Each call is recorded in the process-wide
:class:`ProfileCollector` and logged at DEBUG level, which lets an editor
integration see how long tokenizing and walking take per keystroke.

Usage::

    from chunk_engine.telemetry.profiling import profile_operation

    @profile_operation("sql.segment")
    def segment(tokens):
        ...

Recording can be switched off with ``CHUNK_ENGINE_PROFILING_ENABLED=false``
(see :mod:`chunk_engine.config`); the decorator then only calls through.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


# ---------------------------------------------------------------------------
# Sample record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProfileSample:
    """Duration of one call to a profiled stage."""

    operation: str
    duration_ms: float
    metadata: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Collector (thread-safe singleton)
# ---------------------------------------------------------------------------


class ProfileCollector:
    """Keeps the most recent samples per operation name.

    Parameters
    ----------
    max_samples:
        Samples retained per operation; older ones are discarded.
    enabled:
        When False, :meth:`record` is a no-op.
    """

    _instance: ProfileCollector | None = None
    _instance_lock = threading.Lock()

    def __init__(self, max_samples: int = 200, enabled: bool = True) -> None:
        self._max_samples = max_samples
        self._samples: dict[str, deque[ProfileSample]] = {}
        self._lock = threading.Lock()
        self.enabled = enabled

    @classmethod
    def get_instance(cls) -> ProfileCollector:
        """Return the shared collector, creating it on first use."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    from chunk_engine.config import get_settings

                    cls._instance = ProfileCollector(enabled=get_settings().profiling_enabled)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the shared collector (for testing)."""
        with cls._instance_lock:
            cls._instance = None

    def record(self, sample: ProfileSample) -> None:
        if not self.enabled:
            return
        with self._lock:
            bucket = self._samples.get(sample.operation)
            if bucket is None:
                bucket = self._samples[sample.operation] = deque(maxlen=self._max_samples)
            bucket.append(sample)

    def operations(self) -> list[str]:
        with self._lock:
            return sorted(self._samples)

    def get_stats(self, operation: str) -> dict[str, Any] | None:
        """Aggregate timings for *operation*.

        Returns
        -------
        dict | None
            ``{"operation", "count", "mean_ms", "p50_ms", "p95_ms",
            "max_ms"}``, or ``None`` when nothing was recorded.
        """
        with self._lock:
            bucket = self._samples.get(operation)
            if not bucket:
                return None
            durations = sorted(s.duration_ms for s in bucket)

        count = len(durations)
        return {
            "operation": operation,
            "count": count,
            "mean_ms": round(sum(durations) / count, 3),
            "p50_ms": round(_percentile(durations, 50), 3),
            "p95_ms": round(_percentile(durations, 95), 3),
            "max_ms": round(durations[-1], 3),
        }

    def get_all_stats(self) -> list[dict[str, Any]]:
        stats = (self.get_stats(op) for op in self.operations())
        return [s for s in stats if s is not None]

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()


def _percentile(sorted_data: list[float], p: float) -> float:
    """Linear-interpolated p-th percentile of pre-sorted data."""
    if not sorted_data:
        return 0.0
    k = (p / 100.0) * (len(sorted_data) - 1)
    lo = int(k)
    hi = min(lo + 1, len(sorted_data) - 1)
    return sorted_data[lo] + (k - lo) * (sorted_data[hi] - sorted_data[lo])


# ---------------------------------------------------------------------------
# Decorator
# ---------------------------------------------------------------------------


def profile_operation(name: str) -> Callable[[F], F]:
    """Time every call of the decorated function under *name*."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_ns = time.perf_counter_ns()
            try:
                return func(*args, **kwargs)
            finally:
                duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
                ProfileCollector.get_instance().record(
                    ProfileSample(operation=name, duration_ms=round(duration_ms, 3))
                )
                logger.debug("PROFILE %s: %.3f ms", name, duration_ms)

        return wrapper  # type: ignore[return-value]

    return decorator
