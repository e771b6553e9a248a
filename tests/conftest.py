"""
Shared pytest fixtures for all tests.

Provides fast settings, fake collaborators (sink, cookie lookup, contexts)
and a deterministic clock.
"""

import itertools

import pytest
import pytest_asyncio

from echo_relay.config import Settings
from echo_relay.cookies import StaticCookieSource
from echo_relay.engine import CorrelationEngine
from echo_relay.heartbeat import ContextSet, HeartbeatScheduler
from echo_relay.store import FragmentStore

from tests.fakes import RecordingSink


@pytest.fixture
def settings():
    """Settings with a short heartbeat so timer tests finish quickly."""
    return Settings(
        collector_url="http://collector.test",
        heartbeat_bootstrap_ms=20,
        heartbeat_steady_ms=5_000,
        heartbeat_escalation_delay_ms=10,
    )


@pytest.fixture
def store():
    return FragmentStore()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def cookies():
    return StaticCookieSource("c=1")


@pytest.fixture
def engine(store, sink, cookies, settings):
    return CorrelationEngine(store, sink, cookies, settings)


@pytest.fixture
def clock():
    """Clock advancing by one second per reading."""
    ticks = itertools.count(1_000.0, 1.0)
    return lambda: next(ticks)


@pytest.fixture
def contexts():
    return ContextSet()


@pytest_asyncio.fixture
async def scheduler(settings, clock):
    sched = HeartbeatScheduler(settings, clock=clock)
    yield sched
    sched.deactivate()
