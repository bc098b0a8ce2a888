"""Session plumbing — event wire and persisted run history."""

from reflectloop.session.history_log import HistoryLog
from reflectloop.session.wire import EventType, Wire, WireEvent

__all__ = ["EventType", "HistoryLog", "Wire", "WireEvent"]
