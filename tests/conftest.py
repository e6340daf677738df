"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add project root to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from Relay.messages import CanonicalMessage, Role  # noqa: E402


@pytest.fixture
def conversation():
    """System turns before and between user/assistant turns."""
    return [
        CanonicalMessage(Role.SYSTEM, "SYSTEM ONE"),
        CanonicalMessage(Role.SYSTEM, "SYSTEM TWO"),
        CanonicalMessage(Role.USER, "Hello"),
        CanonicalMessage(Role.ASSISTANT, "Hi"),
        CanonicalMessage(Role.SYSTEM, "SYSTEM THREE"),
        CanonicalMessage(Role.USER, "Do X"),
    ]


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep tests away from the developer's real env file and override config."""
    monkeypatch.delenv("RELAY_CONFIG", raising=False)
    monkeypatch.setattr("Relay.config.parser.USER_ENV_PATH", tmp_path / "missing.env")
