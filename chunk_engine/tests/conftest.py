"""Shared fixtures for chunk_engine tests."""

from __future__ import annotations

import pytest
from chunk_engine.config import get_settings
from chunk_engine.telemetry.profiling import ProfileCollector


@pytest.fixture(autouse=True)
def _fresh_singletons():
    """Each test sees settings read from its own environment and an empty collector."""
    get_settings.cache_clear()
    ProfileCollector.reset()
    yield
    get_settings.cache_clear()
    ProfileCollector.reset()
