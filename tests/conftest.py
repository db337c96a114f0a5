"""
Shared fixtures for the ComplianceGuard test suite.
"""

import sys
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from compliance_guard.database import InMemoryKeyValueStore
from compliance_guard.models import EntityCategory, ListedEntity, SourceList
from compliance_guard.services import (
    DatabaseRegistry, DataSource, MatchFinder, ScreeningOrchestrator, SyncConfiguration, SyncManager
)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=datetime(2024, 3, 1, 9, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class ScriptedDataSource(DataSource):
    """Data source whose per-list results, failures and hangs are set by the test."""

    def __init__(self, data=None):
        self.data = dict(data or {})
        self.failures = {}
        self.hang = set()
        self.release = threading.Event()
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, list_name):
        with self._lock:
            self.calls.append(list_name)
        if list_name in self.hang:
            self.release.wait(5)
        if list_name in self.failures:
            raise self.failures[list_name]
        return list(self.data.get(list_name, []))

    def call_count(self, list_name=None):
        with self._lock:
            if list_name is None:
                return len(self.calls)
            return self.calls.count(list_name)


def make_entity(entity_id, name, aliases=(), category=EntityCategory.INDIVIDUAL, **kwargs):
    return ListedEntity(id=entity_id, name=name, aliases=tuple(aliases), category=category, **kwargs)


def wait_for(condition, timeout=5.0, interval=0.01):
    """Poll condition until it holds or the timeout passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(interval)
    return condition()


PUTIN = make_entity(
    'hmt-001', 'VLADIMIR PUTIN',
    aliases=('VLADIMIR VLADIMIROVICH PUTIN',),
    country='Russia'
)
KIM = make_entity(
    'un-001', 'KIM JONG-UN',
    aliases=('KIM JONG UN',),
    country='North Korea'
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def registry():
    return DatabaseRegistry([
        SourceList(name='List A', region='Test', description='First test list'),
        SourceList(name='List B', region='Test', description='Second test list'),
    ])


@pytest.fixture
def source():
    data_source = ScriptedDataSource({
        'List A': [PUTIN],
        'List B': [KIM],
    })
    yield data_source
    # Let abandoned fetch threads finish
    data_source.release.set()


@pytest.fixture
def sync_config():
    return SyncConfiguration(fetch_timeout_seconds=5)


@pytest.fixture
def sync_manager(registry, source, store, sync_config, clock):
    manager = SyncManager(registry, source, store, config=sync_config, clock=clock)
    yield manager
    manager.stop_periodic()


@pytest.fixture
def match_finder(registry):
    return MatchFinder(registry)


@pytest.fixture
def orchestrator(registry, match_finder, sync_manager, clock):
    return ScreeningOrchestrator(registry, match_finder, sync_manager, clock=clock)
