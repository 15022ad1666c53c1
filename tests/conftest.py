"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import date
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from flashdeck.card import Card, CardState  # noqa: E402
from flashdeck.clock import FixedClock  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def today():
    """A fixed study day."""
    return date(2024, 3, 15)


@pytest.fixture
def clock(today):
    """Clock pinned to the fixed study day."""
    return FixedClock(today)


@pytest.fixture
def make_card():
    """Factory for cards with sensible defaults."""
    counter = {"n": 0}

    def _make(**kwargs) -> Card:
        counter["n"] += 1
        kwargs.setdefault("id", f"card-{counter['n']:03d}")
        kwargs.setdefault("front", f"front {counter['n']}")
        kwargs.setdefault("back", f"back {counter['n']}")
        state = kwargs.get("state", CardState.NEW)
        kwargs["state"] = CardState(state)
        return Card(**kwargs)

    return _make


@pytest.fixture
def sample_record():
    """Provide a persisted card record."""
    return {
        "id": "w-001",
        "front": "house",
        "back": "дом",
        "state": "review",
        "factor": 2.36,
        "ivl": 12,
        "reps": 4,
        "lapses": 1,
        "stepIndex": 0,
        "lapseStepIndex": 0,
        "due": "2024-03-20",
        "lastAnswered": "2024-03-08",
        "tags": "home, nouns",
    }


@pytest.fixture
def legacy_record():
    """Provide a record written by the legacy SM-2 trainer."""
    return {
        "id": 17,
        "english": "to read",
        "russian": "читать",
        "repetition": 3,
        "efactor": 2.6,
        "interval": 16,
        "dueDate": "2024-03-10T00:00:00.000Z",
    }
