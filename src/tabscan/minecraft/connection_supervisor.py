"""Connection lifecycle supervision.

The supervisor is the only owner of the game session and the only writer of
the session state. It drives the state machine from
:mod:`tabscan.datatypes.session_datatypes`:

    OFFLINE -> CONNECTING -> LOGGED_IN -> READY
    any active state -> DISCONNECTING -> OFFLINE

and, unless stopped, schedules exactly one reconnect after a fixed delay each
time the session ends up OFFLINE.

A logged-in session becomes READY either after the spawn signal plus a settle
delay with a live player entity, or (for limbo/lobby servers that never spawn
the player) after a tab-completion probe answers in time.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable

from tabscan.configuration.app_configuration import ConnectionSettings
from tabscan.datatypes.errors import ConnectionLostError, NotReadyError, ProtocolTimeoutError
from tabscan.datatypes.session_datatypes import TRANSITIONS, SessionEvent, SessionState
from tabscan.minecraft.game_session import GameSession
from tabscan.util.logger import get_logger

logger = get_logger("connection_supervisor")

SessionFactory = Callable[[ConnectionSettings], GameSession]


def default_session_factory(settings: ConnectionSettings) -> GameSession:
    return GameSession(
        settings.host,
        settings.port,
        settings.username,
        settings.protocol_version,
        connect_timeout=settings.connect_timeout,
    )


class ConnectionSupervisor:
    """Keep one game session alive and report whether it is ready.

    Args:
        settings: Target server, identity and lifecycle timings.
        session_factory: Builds a fresh session per connection attempt.
    """

    def __init__(self, settings: ConnectionSettings, session_factory: SessionFactory | None = None) -> None:
        self.settings = settings
        self._session_factory = session_factory or default_session_factory
        self._state = SessionState.OFFLINE
        self._session: GameSession | None = None
        self._run_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._stopping = False

        self.last_error: str | None = None
        self.connected_at: datetime | None = None

    # --------------------------
    # State projection
    # --------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def username(self) -> str:
        return self.settings.username

    def is_ready(self) -> bool:
        return self._state is SessionState.READY and self._session is not None and not self._session.is_closed

    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def require_session(self) -> GameSession:
        """Return the live session, or fail fast when it is not READY.

        Raises:
            NotReadyError: In any state other than READY.
        """
        if not self.is_ready():
            raise NotReadyError(f"Game session is not ready (state: {self._state})")
        assert self._session is not None
        return self._session

    def _fire(self, event: SessionEvent) -> SessionState:
        new_state = TRANSITIONS.get((self._state, event))
        if new_state is None:
            logger.debug("[SUPERVISOR] Ignoring event %s in state %s", event, self._state)
            return self._state

        old_state, self._state = self._state, new_state
        logger.info("[SUPERVISOR] %s -> %s (%s)", old_state, new_state, event)

        if new_state is SessionState.READY:
            self.connected_at = datetime.now(timezone.utc)
            self.last_error = None
        elif new_state is SessionState.OFFLINE:
            self.connected_at = None

        return new_state

    # --------------------------
    # Lifecycle
    # --------------------------
    def start(self) -> None:
        """Begin connecting in the background."""
        self._stopping = False
        if self._run_task and not self._run_task.done():
            logger.warning("[SUPERVISOR] Session loop already running")
            return
        if self.reconnect_pending():
            logger.debug("[SUPERVISOR] Reconnect already scheduled")
            return
        self._run_task = asyncio.create_task(self._run_session())

    async def stop(self) -> None:
        """End the current session and cancel any pending reconnect."""
        self._stopping = True
        for task in (self._reconnect_task, self._run_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        logger.info("[SUPERVISOR] Stopped (state: %s)", self._state)

    async def _run_session(self) -> None:
        """One connection attempt, from CONNECTING until back to OFFLINE."""
        self._fire(SessionEvent.CONNECT)
        session = self._session_factory(self.settings)
        self._session = session

        try:
            await session.connect()
            self._fire(SessionEvent.LOGIN_SUCCEEDED)

            ready_event = await self._await_readiness(session)
            if ready_event is None:
                self.last_error = "Session did not become ready"
                logger.warning("[SUPERVISOR] %s", self.last_error)
                self._fire(SessionEvent.READINESS_FAILED)
                return

            self._fire(ready_event)
            error = await session.wait_closed()
            self.last_error = str(error) if error else "Connection closed"
            logger.warning("[SUPERVISOR] Session ended: %s", self.last_error)
            self._fire(SessionEvent.CONNECTION_LOST)
        except ConnectionLostError as exc:
            self.last_error = str(exc)
            logger.warning("[SUPERVISOR] %s", exc)
            self._fire(SessionEvent.CONNECTION_LOST)
        except asyncio.CancelledError:
            self._fire(SessionEvent.STOP_REQUESTED)
            raise
        except Exception as exc:
            self.last_error = f"Unexpected session failure: {exc}"
            logger.exception("[SUPERVISOR] %s", self.last_error)
            self._fire(SessionEvent.CONNECTION_LOST)
        finally:
            await session.close()
            self._session = None
            self._fire(SessionEvent.CLOSED)
            if not self._stopping:
                self._schedule_reconnect()

    async def _await_readiness(self, session: GameSession) -> SessionEvent | None:
        """Decide whether a logged-in session is usable; None means it is not."""
        try:
            await asyncio.wait_for(session.spawned.wait(), self.settings.spawn_timeout)
        except asyncio.TimeoutError:
            return await self._probe(session)

        await asyncio.sleep(self.settings.settle_delay)
        if session.is_closed or session.entity_id is None:
            return None
        await self._send_login_command(session)
        return SessionEvent.SPAWN_CONFIRMED

    async def _probe(self, session: GameSession) -> SessionEvent | None:
        logger.info(
            "[SUPERVISOR] No spawn within %.1fs; probing with a completion request",
            self.settings.spawn_timeout,
        )
        await self._send_login_command(session)
        try:
            await session.request_completions(self.settings.probe_text, self.settings.probe_timeout)
        except ProtocolTimeoutError as exc:
            logger.warning("[SUPERVISOR] Readiness probe failed: %s", exc)
            return None
        return SessionEvent.PROBE_SUCCEEDED

    async def _send_login_command(self, session: GameSession) -> None:
        if not self.settings.login_command:
            return
        await session.send_chat(self.settings.login_command)
        logger.info("[SUPERVISOR] Login command sent")

    def _schedule_reconnect(self) -> None:
        if self.reconnect_pending():
            logger.debug("[SUPERVISOR] Reconnect already scheduled")
            return
        self._reconnect_task = asyncio.create_task(self._reconnect_after_delay())

    async def _reconnect_after_delay(self) -> None:
        delay = self.settings.reconnect_delay
        logger.info("[SUPERVISOR] Reconnecting in %.1fs", delay)
        await asyncio.sleep(delay)
        if self._stopping:
            return
        self._run_task = asyncio.create_task(self._run_session())
