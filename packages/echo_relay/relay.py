"""Assembly of the relay components into one running session."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from .channel import ChannelConnector
from .config import Settings, load_settings
from .cookies import CookieSource
from .engine import CorrelationEngine
from .heartbeat import ContextSource, ContextTracker, HeartbeatScheduler
from .signals import Signal, SignalBus
from .sink import HTTPForwardingSink
from .store import FragmentStore


@dataclass
class Relay:
    settings: Settings
    store: FragmentStore
    sink: HTTPForwardingSink
    engine: CorrelationEngine
    scheduler: HeartbeatScheduler
    tracker: ContextTracker
    bus: SignalBus


def wire(bus: SignalBus, engine: CorrelationEngine, tracker: ContextTracker) -> None:
    settings = engine.settings
    bus.subscribe(Signal.HEADERS, engine.on_headers, settings.media_url_pattern)
    bus.subscribe(Signal.BODY, engine.on_body, settings.media_url_pattern)
    bus.subscribe(Signal.PLAYER, engine.on_player, settings.player_url_pattern)
    bus.subscribe(Signal.CONTEXT_OPENED, tracker.context_opened)
    bus.subscribe(Signal.CONTEXT_CLOSED, tracker.context_closed)


@asynccontextmanager
async def relay_session(
    settings: Optional[Settings] = None,
    *,
    cookies: CookieSource,
    contexts: ContextSource,
    connect: Optional[ChannelConnector] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> AsyncIterator[Relay]:
    """Run a relay inside the managed block.

    On entry the open contexts are counted and the heartbeat starts if any
    exist. On exit the heartbeat stops and in-flight sends are drained.
    """

    settings = settings or load_settings()
    store = FragmentStore()
    sink = HTTPForwardingSink(client, timeout=settings.send_timeout)
    engine = CorrelationEngine(store, sink, cookies, settings)
    scheduler = HeartbeatScheduler(settings, connect=connect)
    tracker = ContextTracker(scheduler, contexts)
    bus = SignalBus()
    wire(bus, engine, tracker)

    relay = Relay(
        settings=settings,
        store=store,
        sink=sink,
        engine=engine,
        scheduler=scheduler,
        tracker=tracker,
        bus=bus,
    )
    await tracker.bootstrap()
    try:
        yield relay
    finally:
        scheduler.deactivate()
        await sink.aclose()
