"""A single offline-mode game connection.

``GameSession`` owns one TCP connection: it performs the login handshake,
answers keep-alives, echoes the spawn position, and exposes the two things the
rest of TabScan needs: a ``spawned`` signal and tab-completion requests.
It never reconnects by itself; that is the connection supervisor's job.
"""

from __future__ import annotations

import asyncio
from typing import List

from tabscan.datatypes.errors import ConnectionLostError, ProtocolTimeoutError
from tabscan.minecraft.protocol import (
    HandshakeState,
    LoginClientbound,
    LoginServerbound,
    PacketBuffer,
    PlayClientbound,
    PlayServerbound,
    ProtocolError,
    chat_component_text,
    chat_payload,
    encode_packet,
    handshake_payload,
    login_start_payload,
    pack_varint,
    position_and_look_payload,
    read_packet,
    tab_complete_payload,
)
from tabscan.util.logger import get_logger

logger = get_logger("game_session")

# Relative-position flag bits of the 1.8 position-and-look packet
RELATIVE_X, RELATIVE_Y, RELATIVE_Z, RELATIVE_YAW, RELATIVE_PITCH = 0x01, 0x02, 0x04, 0x08, 0x10


def last_word(text: str) -> str:
    """Lower-cased word being completed; empty when ``text`` ends with a space."""
    return text.rsplit(" ", 1)[-1].lower()


def completes_token(matches: List[str], token: str) -> bool:
    """True when every match extends ``token`` (an empty answer always does)."""
    return all(last_word(match.strip()).startswith(token) for match in matches)


class GameSession:
    """One login to a game server.

    Args:
        host: Server address.
        port: Server port.
        username: Offline-mode player name to log in with.
        protocol_version: Numeric protocol version (47 for 1.8.x).
        connect_timeout: Limit for TCP connect plus login, in seconds.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        protocol_version: int = 47,
        *,
        connect_timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.protocol_version = protocol_version
        self.connect_timeout = connect_timeout

        self.entity_id: int | None = None
        self.uuid: str | None = None
        self.position: List[float] = [0.0, 0.0, 0.0, 0.0, 0.0]
        self.spawned = asyncio.Event()
        self.close_error: ConnectionLostError | None = None

        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._reader_task: asyncio.Task | None = None
        self._closed = asyncio.Event()
        self._compression_threshold = -1
        self._completion_lock = asyncio.Lock()
        self._pending_completion: asyncio.Future | None = None
        self._pending_token = ""

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    # --------------------------
    # Connection lifecycle
    # --------------------------
    async def connect(self) -> None:
        """Open the socket and complete the login phase.

        Raises:
            ConnectionLostError: When the server is unreachable, refuses the
                login, or does not finish the login in time.
        """
        logger.info("[SESSION] Connecting to %s:%d as %s", self.host, self.port, self.username)
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), self.connect_timeout
            )
        except (OSError, asyncio.TimeoutError) as exc:
            error = ConnectionLostError(f"Cannot connect to {self.host}:{self.port}: {str(exc) or 'timed out'}")
            self._mark_closed(error)
            raise error from exc

        try:
            await self._send(
                LoginServerbound.HANDSHAKE,
                handshake_payload(self.protocol_version, self.host, self.port, HandshakeState.LOGIN),
            )
            await self._send(LoginServerbound.LOGIN_START, login_start_payload(self.username))
            await asyncio.wait_for(self._login(), self.connect_timeout)
        except asyncio.TimeoutError as exc:
            error = ConnectionLostError("Login timed out")
            self._mark_closed(error)
            raise error from exc
        except ConnectionLostError as exc:
            self._mark_closed(exc)
            raise
        except (asyncio.IncompleteReadError, ProtocolError, OSError) as exc:
            error = ConnectionLostError(f"Connection closed during login: {exc}")
            self._mark_closed(error)
            raise error from exc

        logger.info("[SESSION] Logged in as %s (uuid %s)", self.username, self.uuid)
        self._reader_task = asyncio.create_task(self._read_loop())

    async def _login(self) -> None:
        assert self._reader is not None
        while True:
            packet_id, buffer = await read_packet(self._reader, self._compression_threshold)
            if packet_id == LoginClientbound.SET_COMPRESSION:
                self._compression_threshold = buffer.read_varint()
                logger.debug("[SESSION] Compression threshold set to %d", self._compression_threshold)
            elif packet_id == LoginClientbound.LOGIN_SUCCESS:
                self.uuid = buffer.read_string()
                self.username = buffer.read_string() or self.username
                return
            elif packet_id == LoginClientbound.DISCONNECT:
                reason = chat_component_text(buffer.read_string())
                raise ConnectionLostError(f"Disconnected during login: {reason}")
            elif packet_id == LoginClientbound.ENCRYPTION_REQUEST:
                raise ConnectionLostError("Server runs in online mode; only offline-mode login is supported")

    async def close(self) -> None:
        """Close the connection; safe to call more than once."""
        if self._reader_task and not self._reader_task.done():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        self._mark_closed(ConnectionLostError("Session closed"))
        if self._writer is not None:
            try:
                await self._writer.wait_closed()
            except OSError:
                pass

    async def wait_closed(self) -> ConnectionLostError | None:
        """Block until the connection ends and return the reason."""
        await self._closed.wait()
        return self.close_error

    def _mark_closed(self, error: ConnectionLostError | None) -> None:
        if self._closed.is_set():
            return
        self.close_error = error
        self._closed.set()

        pending = self._pending_completion
        if pending is not None and not pending.done():
            pending.set_exception(error or ConnectionLostError())

        if self._writer is not None:
            self._writer.close()

    # --------------------------
    # Packet I/O
    # --------------------------
    async def _send(self, packet_id: int, payload: bytes = b"") -> None:
        if self._writer is None or self.is_closed:
            raise ConnectionLostError(str(self.close_error) if self.close_error else "Session is closed")
        try:
            self._writer.write(encode_packet(packet_id, payload, self._compression_threshold))
            await self._writer.drain()
        except (ConnectionError, OSError) as exc:
            error = ConnectionLostError(f"Write failed: {exc}")
            self._mark_closed(error)
            raise error from exc

    async def _read_loop(self) -> None:
        assert self._reader is not None
        error: ConnectionLostError | None = None
        try:
            while True:
                packet_id, buffer = await read_packet(self._reader, self._compression_threshold)
                await self._handle_play_packet(packet_id, buffer)
        except asyncio.CancelledError:
            self._mark_closed(ConnectionLostError("Session closed"))
            raise
        except ConnectionLostError as exc:
            error = exc
        except (asyncio.IncompleteReadError, ConnectionError, OSError) as exc:
            error = ConnectionLostError(f"Connection lost: {exc.__class__.__name__}")
        except ProtocolError as exc:
            error = ConnectionLostError(f"Protocol error: {exc}")
        if error is not None:
            logger.warning("[SESSION] %s", error)
            self._mark_closed(error)

    async def _handle_play_packet(self, packet_id: int, buffer: PacketBuffer) -> None:
        if packet_id == PlayClientbound.KEEP_ALIVE:
            await self._send(PlayServerbound.KEEP_ALIVE, pack_varint(buffer.read_varint()))

        elif packet_id == PlayClientbound.JOIN_GAME:
            self.entity_id = buffer.read_int()
            logger.debug("[SESSION] Joined game with entity id %d", self.entity_id)

        elif packet_id == PlayClientbound.PLAYER_POSITION_AND_LOOK:
            values = [buffer.read_double(), buffer.read_double(), buffer.read_double(),
                      buffer.read_float(), buffer.read_float()]
            flags = buffer.read(1)[0]
            for index, bit in enumerate((RELATIVE_X, RELATIVE_Y, RELATIVE_Z, RELATIVE_YAW, RELATIVE_PITCH)):
                self.position[index] = self.position[index] + values[index] if flags & bit else values[index]
            await self._send(PlayServerbound.PLAYER_POSITION_AND_LOOK, position_and_look_payload(*self.position))
            if not self.spawned.is_set():
                logger.info("[SESSION] Spawned")
                self.spawned.set()

        elif packet_id == PlayClientbound.TAB_COMPLETE:
            count = buffer.read_varint()
            matches = [buffer.read_string() for _ in range(max(0, count))]
            pending = self._pending_completion
            if pending is None or pending.done():
                return
            if completes_token(matches, self._pending_token):
                pending.set_result(matches)
            else:
                logger.debug("[SESSION] Dropped stale completion answer %r", matches[:3])

        elif packet_id == PlayClientbound.DISCONNECT:
            reason = chat_component_text(buffer.read_string())
            raise ConnectionLostError(f"Kicked: {reason}")

        elif packet_id == PlayClientbound.SET_COMPRESSION:
            self._compression_threshold = buffer.read_varint()

    # --------------------------
    # Public requests
    # --------------------------
    async def request_completions(self, text: str, timeout: float) -> List[str]:
        """Ask the server to tab-complete ``text`` and return its suggestions.

        Responses carry no request id, so requests are serialized and an
        answer is only accepted when every match extends the last word of
        ``text``. A late answer to an earlier request is ignored.

        Raises:
            ProtocolTimeoutError: No response within ``timeout`` seconds.
            ConnectionLostError: The session is or becomes closed.
        """
        async with self._completion_lock:
            future: asyncio.Future = asyncio.get_running_loop().create_future()
            self._pending_completion = future
            self._pending_token = last_word(text)
            try:
                await self._send(PlayServerbound.TAB_COMPLETE, tab_complete_payload(text))
                return await asyncio.wait_for(future, timeout)
            except asyncio.TimeoutError as exc:
                raise ProtocolTimeoutError(f"No completion response for {text!r} within {timeout:.1f}s") from exc
            finally:
                self._pending_completion = None

    async def send_chat(self, message: str) -> None:
        await self._send(PlayServerbound.CHAT_MESSAGE, chat_payload(message))
