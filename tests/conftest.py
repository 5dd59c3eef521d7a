"""
Pytest config.

Settings are read from the environment when ``main`` is imported, so the
required variables are seeded here before any test module imports the app.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("AUTH0_DOMAIN", "tenant.auth0.test")
os.environ.setdefault("HOME_LOCATION", "http://localhost:8000")
os.environ.setdefault("SESSION_SECRET", "test-secret-key-for-testing-purposes-only")
os.environ.setdefault("SESSION_STORE", "memory")
os.environ.setdefault("ENVIRONMENT", "development")


def _ensure_repo_root_on_syspath() -> None:
    here = Path(__file__).resolve()
    # repo root for `app` and `main`; tests/ for the shared fakes module
    for path in (str(here.parents[1]), str(here.parent)):
        if path not in sys.path:
            sys.path.insert(0, path)


_ensure_repo_root_on_syspath()

from app.api import deps  # noqa: E402
from app.core.config import get_settings  # noqa: E402
from fakes import FakeUserStore  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings_and_sessions():
    get_settings.cache_clear()
    deps.get_session_store.cache_clear()
    yield
    get_settings.cache_clear()
    deps.get_session_store.cache_clear()


@pytest.fixture
def user_store() -> FakeUserStore:
    return FakeUserStore()


@pytest.fixture
def app(user_store):
    import main

    main.app.dependency_overrides[deps.get_db_service] = lambda: user_store
    yield main.app
    main.app.dependency_overrides.clear()
