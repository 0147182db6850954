# tests/conftest.py
"""
Global test bootstrap
- Pins settings to test-friendly values BEFORE anything imports `dramahub`
- Selects the asyncio backend for `@pytest.mark.anyio` tests
- Pulls in the shared fixtures (SQLite cache store, fakes, sample documents)
"""

from __future__ import annotations

import os

# ──────────────────────────────────────────────────────────────────────────────
# 🌱 Test env (set before importing the app so Settings picks it up)
# ──────────────────────────────────────────────────────────────────────────────
os.environ.setdefault("ENV", "development")
os.environ.setdefault("TMDB_API_KEY", "test-v3-key")
os.environ.setdefault("TMDB_PRIMARY_LANGUAGE", "pt-BR")
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/15")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

# ──────────────────────────────────────────────────────────────────────────────
# 📦 Shared fixtures
# ──────────────────────────────────────────────────────────────────────────────
from tests.fixtures.db import *        # noqa: F401,F403
from tests.fixtures.fakes import *     # noqa: F401,F403
from tests.fixtures.documents import * # noqa: F401,F403


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"
