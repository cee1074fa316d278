"""Tests for the prefix-sweep player enumerator."""

from unittest.mock import MagicMock

import pytest

from fake_server import FakeGameServer, serve
from fake_session import FakeSession
from tabscan.datatypes.errors import ConnectionLostError, NotReadyError, ProtocolTimeoutError
from tabscan.minecraft.game_session import GameSession
from tabscan.minecraft.player_enumerator import PlayerEnumerator, extract_names


class StubSupervisor:

    def __init__(self, session, ready=True, username="ScanBot"):
        self.session = session
        self.ready = ready
        self.username = username

    def is_ready(self):
        return self.ready

    def require_session(self):
        if not self.ready:
            raise NotReadyError("Game session is not ready (state: offline)")
        return self.session


def test_extract_names_filters_illegal_and_command_prefix():
    matches = ["Steve", "/msg Alex", {"match": "Notch"}, "bad name!", "", None, "ab", "x" * 17]
    assert extract_names(matches) == ["Steve", "Alex", "Notch"]


@pytest.mark.asyncio
async def test_union_is_deduplicated_and_excludes_self():
    session = FakeSession(completions={
        "/msg a": ["Alex", "alex_2"],
        "/msg s": ["Steve", "ScanBot", "Alex"],
        "/msg n": ["Notch", "Steve"],
    })
    enumerator = PlayerEnumerator(StubSupervisor(session), inter_prefix_delay=0)

    players = await enumerator.enumerate(prefixes=["a", "s", "n"])

    assert players == ["Alex", "alex_2", "Notch", "Steve"]
    assert session.completion_calls == ["/msg a", "/msg s", "/msg n"]


@pytest.mark.asyncio
async def test_offline_fails_fast_without_requests():
    session = FakeSession()
    enumerator = PlayerEnumerator(StubSupervisor(session, ready=False))

    with pytest.raises(NotReadyError):
        await enumerator.enumerate()

    assert session.completion_calls == []


@pytest.mark.asyncio
async def test_timeout_counts_as_no_matches():
    session = FakeSession(completions={
        "/msg a": ProtocolTimeoutError(),
        "/msg b": ["Bob"],
    })
    enumerator = PlayerEnumerator(StubSupervisor(session), inter_prefix_delay=0)

    assert await enumerator.enumerate(prefixes=["a", "b"]) == ["Bob"]


@pytest.mark.asyncio
async def test_readiness_lost_mid_sweep_aborts():
    supervisor = StubSupervisor(None)

    def lose_readiness():
        supervisor.ready = False
        return ["Alex"]

    session = FakeSession(completions={"/msg a": lose_readiness, "/msg b": ["Bob"]})
    supervisor.session = session
    enumerator = PlayerEnumerator(supervisor, inter_prefix_delay=0)

    with pytest.raises(NotReadyError):
        await enumerator.enumerate(prefixes=["a", "b", "c"])

    assert session.completion_calls == ["/msg a"]


@pytest.mark.asyncio
async def test_readiness_lost_after_last_prefix_aborts():
    supervisor = StubSupervisor(None)

    def lose_readiness():
        supervisor.ready = False
        return ["Alex"]

    supervisor.session = FakeSession(completions={"/msg a": lose_readiness})
    enumerator = PlayerEnumerator(supervisor, inter_prefix_delay=0)

    with pytest.raises(NotReadyError):
        await enumerator.enumerate(prefixes=["a"])


@pytest.mark.asyncio
async def test_connection_loss_becomes_not_ready():
    session = FakeSession(completions={"/msg a": ConnectionLostError("reset")})
    enumerator = PlayerEnumerator(StubSupervisor(session), inter_prefix_delay=0)

    with pytest.raises(NotReadyError):
        await enumerator.enumerate(prefixes=["a"])


@pytest.mark.asyncio
async def test_default_sweep_and_pacing(monkeypatch):
    sleeps = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    monkeypatch.setattr("tabscan.minecraft.player_enumerator.asyncio.sleep", fake_sleep)
    session = FakeSession()
    enumerator = PlayerEnumerator(
        StubSupervisor(session),
        completion_command="/tell ",
        inter_prefix_delay=0.2,
    )

    assert await enumerator.enumerate() == []

    assert len(session.completion_calls) == 37
    assert session.completion_calls[0] == "/tell a"
    assert session.completion_calls[-1] == "/tell _"
    assert sleeps == [0.2] * 36


@pytest.mark.asyncio
async def test_request_timeout_is_passed_through():
    session = MagicMock()

    async def request_completions(text, timeout):
        assert timeout == 1.5
        return []

    session.request_completions = request_completions
    enumerator = PlayerEnumerator(StubSupervisor(session), request_timeout=1.5, inter_prefix_delay=0)

    assert await enumerator.enumerate(prefixes=["q"]) == []


@pytest.mark.asyncio
async def test_slow_answer_does_not_shift_later_prefixes():
    fake = FakeGameServer(players=["Alex", "Bob", "Carl"], answer_delays={"/msg a": 0.3})
    async with serve(fake) as port:
        session = GameSession("127.0.0.1", port, "ScanBot")
        await session.connect()
        try:
            enumerator = PlayerEnumerator(StubSupervisor(session), request_timeout=0.2, inter_prefix_delay=0)
            players = await enumerator.enumerate(prefixes=["a", "b", "c"])
        finally:
            await session.close()

    assert players == ["Bob", "Carl"]
