"""
Shared pytest fixtures for the smartframes test suite.
"""

import pytest


# ---------------------------------------------------------------------------
# Basic settings fixture: overrides env vars for tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def override_settings(monkeypatch):
    """Provide safe dummy credentials so Settings() doesn't fail in tests."""
    monkeypatch.setenv("CLASSIFIER_API_KEY", "sk-test-key")
    monkeypatch.setenv("CLASSIFIER_BASE_URL", "https://classifier.test")
    # Clear lru_cache so each test gets fresh Settings from monkeypatched env
    from smartframes.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
