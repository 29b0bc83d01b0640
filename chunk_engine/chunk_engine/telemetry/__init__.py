"""Profiling and logging setup for the extraction pipeline."""

from __future__ import annotations

from chunk_engine.telemetry.logging_setup import JSONFormatter, configure_logging
from chunk_engine.telemetry.profiling import ProfileCollector, ProfileSample, profile_operation

__all__ = [
    "JSONFormatter",
    "ProfileCollector",
    "ProfileSample",
    "configure_logging",
    "profile_operation",
]
