"""Tests for the 1.8 wire codec."""

import asyncio
import zlib

import pytest

from tabscan.datatypes.errors import ConfigError
from tabscan.minecraft.protocol import (
    PacketBuffer,
    ProtocolError,
    chat_component_text,
    chat_payload,
    decode_body,
    encode_packet,
    pack_string,
    pack_varint,
    read_packet,
    resolve_protocol_version,
    tab_complete_payload,
)


@pytest.mark.parametrize(
    "value, encoded",
    [(0, b"\x00"), (1, b"\x01"), (127, b"\x7f"), (128, b"\x80\x01"), (300, b"\xac\x02"),
     (2147483647, b"\xff\xff\xff\xff\x07"), (-1, b"\xff\xff\xff\xff\x0f")],
)
def test_pack_varint_known_values(value, encoded):
    assert pack_varint(value) == encoded
    assert PacketBuffer(encoded).read_varint() == value


def test_varint_too_long():
    with pytest.raises(ProtocolError):
        PacketBuffer(b"\xff" * 6).read_varint()


def test_read_past_end():
    with pytest.raises(ProtocolError):
        PacketBuffer(b"\x01").read(2)


def test_pack_string_uses_byte_length():
    assert pack_string("é") == b"\x02\xc3\xa9"
    assert PacketBuffer(pack_string("héllo")).read_string() == "héllo"


def test_tab_complete_payload_has_no_block_position():
    assert tab_complete_payload("/msg a") == pack_string("/msg a") + b"\x00"


def test_chat_payload_is_capped():
    assert PacketBuffer(chat_payload("x" * 300)).read_string() == "x" * 100


def test_uncompressed_frame():
    frame = encode_packet(0x14, b"abc")
    assert frame == b"\x04\x14abc"
    packet_id, buffer = decode_body(frame[1:])
    assert packet_id == 0x14
    assert buffer.remaining() == b"abc"


def test_compressed_frame_below_threshold_is_raw():
    frame = encode_packet(0x01, b"hi", compression_threshold=256)
    # length, data length 0, id, payload
    assert frame == b"\x04\x00\x01hi"
    packet_id, buffer = decode_body(frame[1:], 256)
    assert (packet_id, buffer.remaining()) == (0x01, b"hi")


def test_compressed_frame_above_threshold():
    payload = b"z" * 500
    frame = encode_packet(0x01, payload, compression_threshold=64)
    body = PacketBuffer(frame)
    length = body.read_varint()
    rest = body.remaining()
    assert len(rest) == length
    inner = PacketBuffer(rest)
    assert inner.read_varint() == len(payload) + 1
    assert zlib.decompress(inner.remaining()) == b"\x01" + payload
    packet_id, buffer = decode_body(rest, 64)
    assert (packet_id, buffer.remaining()) == (0x01, payload)


def test_compressed_length_mismatch():
    body = pack_varint(99) + zlib.compress(b"\x01abc")
    with pytest.raises(ProtocolError):
        decode_body(body, 0)


@pytest.mark.asyncio
async def test_read_packet_from_stream():
    reader = asyncio.StreamReader()
    reader.feed_data(encode_packet(0x3A, pack_varint(1) + pack_string("Steve")))
    reader.feed_eof()

    packet_id, buffer = await read_packet(reader)

    assert packet_id == 0x3A
    assert buffer.read_varint() == 1
    assert buffer.read_string() == "Steve"


@pytest.mark.asyncio
async def test_read_packet_rejects_bad_length():
    reader = asyncio.StreamReader()
    reader.feed_data(b"\x00")
    reader.feed_eof()
    with pytest.raises(ProtocolError):
        await read_packet(reader)


@pytest.mark.parametrize("version", ["1.8", "1.8.9", "47", 47])
def test_resolve_protocol_version(version):
    assert resolve_protocol_version(version) == 47


@pytest.mark.parametrize("version", ["1.12.2", "340", "latest"])
def test_resolve_protocol_version_unsupported(version):
    with pytest.raises(ConfigError):
        resolve_protocol_version(version)


def test_chat_component_text():
    raw = '{"text": "Banned: ", "extra": [{"text": "spam"}, " bots"]}'
    assert chat_component_text(raw) == "Banned: spam bots"
    assert chat_component_text("plain reason") == "plain reason"
