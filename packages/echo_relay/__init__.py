"""Client-facing exports for echo_relay."""

from .config import Settings, load_settings
from .engine import CorrelationEngine, RequestState
from .heartbeat import ContextSet, ContextTracker, HeartbeatScheduler, HeartbeatState
from .records import CompletedRecord, PendingRecord, StartNotification
from .relay import Relay, relay_session
from .signals import Signal, SignalBus
from .sink import HTTPForwardingSink
from .store import FragmentStore

__all__ = [
    "CompletedRecord",
    "ContextSet",
    "ContextTracker",
    "CorrelationEngine",
    "FragmentStore",
    "HTTPForwardingSink",
    "HeartbeatScheduler",
    "HeartbeatState",
    "PendingRecord",
    "Relay",
    "RequestState",
    "Settings",
    "Signal",
    "SignalBus",
    "StartNotification",
    "load_settings",
    "relay_session",
]
