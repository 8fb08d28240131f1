"""
Shared pytest fixtures for holdings calculator tests.
"""

from __future__ import annotations

import threading

import pytest

from holdings_calc.data.categories import CategoryRegistry
from tests.fixtures.graphs import AS_OF, reference_graph


@pytest.fixture
def as_of():
    """Default query date; every fixture position is valid on it."""
    return AS_OF


@pytest.fixture
def registry() -> CategoryRegistry:
    return CategoryRegistry.default()


@pytest.fixture
def reference_stores():
    """Portfolio -> 2 funds -> 12 equities (see tests.fixtures.graphs)."""
    return reference_graph()


@pytest.fixture
def cancel_event() -> threading.Event:
    """Cancellation token satisfying CancellationToken via Event.is_set."""
    return threading.Event()
