"""Pytest configuration and fixtures for fblib tests."""

import sys
import warnings

import pytest

# Suppress ResourceWarnings from file cleanup in Python 3.13
if sys.version_info >= (3, 13):
    warnings.filterwarnings("ignore", category=ResourceWarning)

_FBLIB_ENV_VARS = (
    "FBLIB_HOME",
    "FBLIB_DEV_MODE",
    "FBLIB_USER_DIR",
    "FBLIB_BUILTIN_DIR",
    "FBLIB_SKETCH_DIR",
    "FBLIB_DOWNLOADS_DIR",
    "FBLIB_INDEX_PATH",
    "FBLIB_DOWNLOAD_TIMEOUT",
)


@pytest.fixture(autouse=True)
def _isolate_fblib_env(monkeypatch):  # noqa: PT004
    """Keep a developer's FBLIB_* environment out of the tests."""
    for name in _FBLIB_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
