"""
Pytest fixtures for the language detection service tests.
"""

import os
import sys

import pytest
from fastapi.testclient import TestClient

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app, get_runtime
from engine_loader import EngineRuntime


class FakeEngine:
    """Deterministic stand-in for the CLD3 engine."""

    def __init__(self, labels=None, default="en", failing=()):
        self.labels = labels or {}
        self.default = default
        self.failing = set(failing)
        self.calls = []

    def detect_language(self, text):
        self.calls.append(text)
        if text in self.failing:
            raise RuntimeError(f"engine crashed on {text!r}")
        return self.labels.get(text, self.default)


class FakeLoader:
    """Loader returning a fixed engine (None means unavailable)."""

    def __init__(self, engine):
        self.engine = engine
        self.calls = 0

    def acquire(self):
        self.calls += 1
        return self.engine


@pytest.fixture
def fake_engine():
    """Engine with a few known labels; 'boom' makes it raise."""
    return FakeEngine(
        labels={"Hello world": "en", "Bonjour": "fr", "Hola": "es", "xyzzy": "unknown", "Grüß Gott": "de"},
        failing={"boom"},
    )


@pytest.fixture
def loaded_runtime(fake_engine):
    """Runtime in the LOADED state."""
    runtime = EngineRuntime(FakeLoader(fake_engine))
    runtime.load()
    return runtime


@pytest.fixture
def unavailable_runtime():
    """Runtime in the UNAVAILABLE state."""
    runtime = EngineRuntime(FakeLoader(None))
    runtime.load()
    return runtime


@pytest.fixture
def client(loaded_runtime):
    """FastAPI test client backed by a loaded engine."""
    app.dependency_overrides[get_runtime] = lambda: loaded_runtime
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def unavailable_client(unavailable_runtime):
    """FastAPI test client for a host without the engine."""
    app.dependency_overrides[get_runtime] = lambda: unavailable_runtime
    yield TestClient(app)
    app.dependency_overrides.clear()
