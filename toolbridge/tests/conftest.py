"""Pytest configuration for the toolbridge test suite.

Keeps configuration state from leaking between tests: the parsed config file
and the ``.env`` load are cached at module level, so they are reset around
every test, and a stray ``.env`` in the working directory is ignored.
"""

from __future__ import annotations

from typing import Iterator

import pytest

from toolbridge.config import reset_config_cache


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    """Point ``.env`` loading at an empty temp path and clear config caches."""
    monkeypatch.setenv("DOTENV_FILE", str(tmp_path / "missing.env"))
    monkeypatch.delenv("TOOLBRIDGE_CONFIG_FILE", raising=False)
    monkeypatch.delenv("TOOLBRIDGE_LOG_LEVEL", raising=False)
    for name in ("TOOLBRIDGE_BACKEND_API_KEY", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    reset_config_cache()
    yield
    reset_config_cache()


@pytest.fixture()
def weather_tools() -> tuple[str, ...]:
    """Tool names used by most detection and bridge tests."""
    return ("get_weather", "search")
