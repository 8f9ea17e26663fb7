import sys

import pytest

from canceldemo.app.settings import loadSettings



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



@pytest.fixture(autouse=True)
def isolatedSettings(tmp_path, monkeypatch):
    """Point settings at an empty per-test file so a user's json5 never leaks in."""
    monkeypatch.setenv("CANCELDEMO_SETTINGS", str(tmp_path / "canceldemo.json5"))
    loadSettings.cache_clear()
    yield
    loadSettings.cache_clear()
