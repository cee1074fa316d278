"""Minimal Minecraft 1.8.x (protocol 47) wire codec.

Only what an offline-mode client needs to log in, stay connected and ask for
tab completions: VarInt/string primitives, packet framing with optional zlib
compression, and the packet ids used by :mod:`tabscan.minecraft.game_session`.
"""

from __future__ import annotations

import asyncio
import json
import struct
import zlib
from typing import Tuple

from tabscan.datatypes.errors import ConfigError

PROTOCOL_VERSIONS = {
    "1.8": 47,
    "1.8.1": 47,
    "1.8.2": 47,
    "1.8.3": 47,
    "1.8.4": 47,
    "1.8.5": 47,
    "1.8.6": 47,
    "1.8.7": 47,
    "1.8.8": 47,
    "1.8.9": 47,
}

MAX_PACKET_LENGTH = 2 * 1024 * 1024
MAX_STRING_LENGTH = 32767


class HandshakeState:
    STATUS = 1
    LOGIN = 2


class LoginClientbound:
    DISCONNECT = 0x00
    ENCRYPTION_REQUEST = 0x01
    LOGIN_SUCCESS = 0x02
    SET_COMPRESSION = 0x03


class LoginServerbound:
    HANDSHAKE = 0x00
    LOGIN_START = 0x00


class PlayClientbound:
    KEEP_ALIVE = 0x00
    JOIN_GAME = 0x01
    PLAYER_POSITION_AND_LOOK = 0x08
    TAB_COMPLETE = 0x3A
    DISCONNECT = 0x40
    SET_COMPRESSION = 0x46


class PlayServerbound:
    KEEP_ALIVE = 0x00
    CHAT_MESSAGE = 0x01
    PLAYER_POSITION_AND_LOOK = 0x06
    TAB_COMPLETE = 0x14


class ProtocolError(Exception):
    """Malformed data on the wire."""


def resolve_protocol_version(version: str | int) -> int:
    """Map a game version string ("1.8.9") or a raw protocol number to the protocol number.

    Raises:
        ConfigError: For versions this client cannot speak.
    """
    if isinstance(version, int):
        number = version
    else:
        text = str(version).strip()
        if text.isdigit():
            number = int(text)
        elif text in PROTOCOL_VERSIONS:
            number = PROTOCOL_VERSIONS[text]
        else:
            raise ConfigError(f"Unsupported game version {version!r}; supported: 1.8.x")
    if number not in PROTOCOL_VERSIONS.values():
        raise ConfigError(f"Unsupported protocol version {number}; supported: 47 (1.8.x)")
    return number


# -------------------- Primitives --------------------

def pack_varint(value: int) -> bytes:
    """Encode a signed 32-bit integer as a VarInt."""
    value &= 0xFFFFFFFF
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def pack_string(text: str) -> bytes:
    data = text.encode("utf-8")
    return pack_varint(len(data)) + data


def pack_bool(value: bool) -> bytes:
    return b"\x01" if value else b"\x00"


async def read_varint(reader: asyncio.StreamReader) -> int:
    """Read a VarInt directly from a stream (used for the frame length)."""
    result = 0
    for shift in range(0, 35, 7):
        byte = (await reader.readexactly(1))[0]
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result
    raise ProtocolError("VarInt is too long")


class PacketBuffer:
    """Sequential reader over a packet body."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.offset = 0

    def read(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise ProtocolError("Packet ended early")
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def read_varint(self) -> int:
        result = 0
        for shift in range(0, 35, 7):
            byte = self.read(1)[0]
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                if result & 0x80000000:
                    result -= 1 << 32
                return result
        raise ProtocolError("VarInt is too long")

    def read_string(self) -> str:
        length = self.read_varint()
        if length < 0 or length > MAX_STRING_LENGTH * 4:
            raise ProtocolError(f"Invalid string length {length}")
        return self.read(length).decode("utf-8", errors="replace")

    def read_bool(self) -> bool:
        return self.read(1) != b"\x00"

    def read_int(self) -> int:
        return struct.unpack(">i", self.read(4))[0]

    def read_double(self) -> float:
        return struct.unpack(">d", self.read(8))[0]

    def read_float(self) -> float:
        return struct.unpack(">f", self.read(4))[0]

    def remaining(self) -> bytes:
        return self.read(len(self.data) - self.offset)


# -------------------- Framing --------------------

def encode_packet(packet_id: int, payload: bytes = b"", compression_threshold: int = -1) -> bytes:
    """Frame a packet, compressing it when compression is on and it is large enough."""
    body = pack_varint(packet_id) + payload
    if compression_threshold >= 0:
        if len(body) >= compression_threshold:
            body = pack_varint(len(body)) + zlib.compress(body)
        else:
            body = pack_varint(0) + body
    return pack_varint(len(body)) + body


def decode_body(frame: bytes, compression_threshold: int = -1) -> Tuple[int, PacketBuffer]:
    """Split a frame body (without its length prefix) into packet id and payload."""
    buffer = PacketBuffer(frame)
    if compression_threshold >= 0:
        data_length = buffer.read_varint()
        if data_length:
            try:
                data = zlib.decompress(buffer.remaining())
            except zlib.error as exc:
                raise ProtocolError(f"Bad compressed packet: {exc}") from exc
            if len(data) != data_length:
                raise ProtocolError("Decompressed length mismatch")
            buffer = PacketBuffer(data)
    packet_id = buffer.read_varint()
    return packet_id, buffer


async def read_packet(reader: asyncio.StreamReader, compression_threshold: int = -1) -> Tuple[int, PacketBuffer]:
    """Read one full packet from ``reader``.

    Raises:
        asyncio.IncompleteReadError: When the peer closes mid-packet.
        ProtocolError: On malformed frames.
    """
    length = await read_varint(reader)
    if length <= 0 or length > MAX_PACKET_LENGTH:
        raise ProtocolError(f"Invalid packet length {length}")
    frame = await reader.readexactly(length)
    return decode_body(frame, compression_threshold)


# -------------------- Packet builders --------------------

def handshake_payload(protocol_version: int, host: str, port: int, next_state: int) -> bytes:
    return pack_varint(protocol_version) + pack_string(host) + struct.pack(">H", port) + pack_varint(next_state)


def login_start_payload(username: str) -> bytes:
    return pack_string(username)


def tab_complete_payload(text: str) -> bytes:
    return pack_string(text[:MAX_STRING_LENGTH]) + pack_bool(False)


def chat_payload(message: str) -> bytes:
    return pack_string(message[:100])


def position_and_look_payload(x: float, y: float, z: float, yaw: float, pitch: float, on_ground: bool = True) -> bytes:
    return struct.pack(">dddff", x, y, z, yaw, pitch) + pack_bool(on_ground)


def chat_component_text(raw: str) -> str:
    """Flatten a JSON chat component (disconnect reasons) into plain text."""
    try:
        component = json.loads(raw)
    except (TypeError, ValueError):
        return raw

    def flatten(node) -> str:
        if isinstance(node, str):
            return node
        if isinstance(node, list):
            return "".join(flatten(part) for part in node)
        if isinstance(node, dict):
            text = str(node.get("text", "")) or str(node.get("translate", ""))
            return text + "".join(flatten(part) for part in node.get("extra", []) or [])
        return str(node)

    return flatten(component)
