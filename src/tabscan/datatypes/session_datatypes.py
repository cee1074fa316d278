"""Connection lifecycle states and the events that move between them."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple


class SessionState(Enum):
    OFFLINE = "offline"
    CONNECTING = "connecting"
    LOGGED_IN = "logged_in"
    READY = "ready"
    DISCONNECTING = "disconnecting"

    def __str__(self) -> str:
        return self.value


class SessionEvent(Enum):
    CONNECT = "connect"
    LOGIN_SUCCEEDED = "login_succeeded"
    SPAWN_CONFIRMED = "spawn_confirmed"
    PROBE_SUCCEEDED = "probe_succeeded"
    READINESS_FAILED = "readiness_failed"
    CONNECTION_LOST = "connection_lost"
    STOP_REQUESTED = "stop_requested"
    CLOSED = "closed"

    def __str__(self) -> str:
        return self.value


_ACTIVE_STATES = (SessionState.CONNECTING, SessionState.LOGGED_IN, SessionState.READY)

TRANSITIONS: Dict[Tuple[SessionState, SessionEvent], SessionState] = {
    (SessionState.OFFLINE, SessionEvent.CONNECT): SessionState.CONNECTING,
    (SessionState.CONNECTING, SessionEvent.LOGIN_SUCCEEDED): SessionState.LOGGED_IN,
    (SessionState.LOGGED_IN, SessionEvent.SPAWN_CONFIRMED): SessionState.READY,
    (SessionState.LOGGED_IN, SessionEvent.PROBE_SUCCEEDED): SessionState.READY,
    (SessionState.LOGGED_IN, SessionEvent.READINESS_FAILED): SessionState.DISCONNECTING,
    **{(state, SessionEvent.CONNECTION_LOST): SessionState.DISCONNECTING for state in _ACTIVE_STATES},
    **{(state, SessionEvent.STOP_REQUESTED): SessionState.DISCONNECTING for state in _ACTIVE_STATES},
    (SessionState.DISCONNECTING, SessionEvent.CLOSED): SessionState.OFFLINE,
}
