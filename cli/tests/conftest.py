"""Shared fixtures for CLI tests.

The CLI callback installs a handler on the ``chunk_engine`` logger and
caches settings; both are reset around every test so invocations stay
independent.
"""

from __future__ import annotations

import logging

import pytest
from chunk_engine.config import get_settings
from chunk_engine.telemetry.profiling import ProfileCollector


@pytest.fixture(autouse=True)
def _isolated_engine_state():
    get_settings.cache_clear()
    ProfileCollector.reset()
    package_logger = logging.getLogger("chunk_engine")
    level = package_logger.level
    yield
    for handler in list(package_logger.handlers):
        if getattr(handler, "_chunk_engine_handler", False):
            package_logger.removeHandler(handler)
    package_logger.setLevel(level)
    get_settings.cache_clear()
    ProfileCollector.reset()


@pytest.fixture
def sql_file(tmp_path):
    """Return a factory that writes a script under ``tmp_path``."""

    def _write(text: str, name: str = "script.sql"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
