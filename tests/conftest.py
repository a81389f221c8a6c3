"""
Shared fixtures for store, mirror, and command tests.

Provides a binding store in a temporary directory and a recording
mock transport so nothing touches the real filesystem or network.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from chatbinder.persistence.bindings import BindingStore
from chatbinder.transport.mock import MockTransport


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    """Path to the bindings file inside the temp directory."""
    return tmp_path / "state" / "bindings.json"


@pytest.fixture
def store(store_path: Path) -> BindingStore:
    """Freshly created empty binding store."""
    return BindingStore.open(store_path)


@pytest.fixture
def transport() -> MockTransport:
    """Recording transport; every user is a member everywhere by default."""
    return MockTransport()


def read_store_file(path: Path) -> dict:
    """Helper to read the raw persisted key-value map."""
    return json.loads(path.read_text(encoding="utf-8"))
