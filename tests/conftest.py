"""
Pytest configuration and shared fixtures for the Payflow test suite.
"""
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def default_graph():
    """The starting canvas: initializer, provider-1, provider-2."""
    from core.schemas import create_default_graph
    return create_default_graph()


@pytest.fixture
def store(default_graph):
    """A GraphStore holding the default canvas."""
    from core.graph_store import GraphStore
    return GraphStore(default_graph)


@pytest.fixture
def empty_store():
    from core.graph_store import GraphStore
    return GraphStore()


@pytest.fixture
def kv():
    from infrastructure.storage import MemoryKeyValueStore
    return MemoryKeyValueStore()


@pytest.fixture
def events():
    """An EventBus plus the list of every event it published."""
    from infrastructure.event_bus import EventBus

    bus = EventBus()
    seen = []
    bus.subscribe_all(seen.append)
    return bus, seen


@pytest.fixture
def session(kv, clock, events):
    """An EditorSession on the default canvas with a seeded RNG and fake clock."""
    from api.editor import EditorSession
    from infrastructure.notices import NoticeBoard

    bus, _ = events
    return EditorSession(
        kv=kv,
        bus=bus,
        notices=NoticeBoard(clock=clock),
        rng=random.Random(42),
    )
