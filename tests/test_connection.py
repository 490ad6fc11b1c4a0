"""Tests for the WebSocket transport and wire serialization.

The connection is exercised through its queues and its reader/writer
coroutines with an in-memory stand-in for the socket; no server runs.
"""

from __future__ import annotations

import asyncio
import json

import pytest

from conquestclient.models.messages import ClientReady, EndPhase
from conquestclient.network.connection import Connection
from conquestclient.network.serialization import decode, encode, to_wire


class _FakeWebSocket:
    """Yields the given frames, records what is sent."""

    def __init__(self, frames=()):
        self._frames = list(frames)
        self.sent: list[str] = []

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for frame in self._frames:
            yield frame

    async def send(self, data: str) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class TestSerialization:
    def test_to_wire_drops_unset_optionals(self):
        data = to_wire(ClientReady(event_id="e1", event_type="combat"))
        assert data == {"type": "client_ready", "event_id": "e1", "event_type": "combat"}

    def test_encode_wraps_in_envelope(self):
        frame = json.loads(encode({"type": "client_ready", "event_id": "e1"}))
        assert frame["type"] == "client_ready"
        assert frame["payload"] == {"event_id": "e1"}
        assert frame["id"]
        assert isinstance(frame["timestamp"], int)

    def test_encode_flat(self):
        frame = json.loads(encode({"type": "end_phase"}, envelope=False))
        assert frame == {"type": "end_phase"}

    def test_decode_unwraps_envelope(self):
        raw = json.dumps({"type": "turn_changed", "id": "m1", "timestamp": 1,
                          "payload": {"current_player": "p2"}})
        assert decode(raw) == {"type": "turn_changed", "current_player": "p2"}

    def test_decode_envelope_type_wins(self):
        raw = json.dumps({"type": "error", "payload": {"type": "bogus", "code": "x"}})
        assert decode(raw)["type"] == "error"

    def test_decode_flat_and_bytes(self):
        raw = json.dumps({"type": "welcome", "server_version": "1.2"}).encode()
        assert decode(raw) == {"type": "welcome", "server_version": "1.2"}

    def test_decode_null_payload(self):
        assert decode('{"type": "end_phase", "payload": null}') == {"type": "end_phase"}

    @pytest.mark.parametrize("raw", ["[1, 2]", '{"payload": {}}', '{"type": 5}', "not json"])
    def test_decode_rejects(self, raw):
        with pytest.raises(ValueError):
            decode(raw)


# ---------------------------------------------------------------------------
# Queues
# ---------------------------------------------------------------------------


class TestQueues:
    def test_send_queues_wire_dict(self):
        conn = Connection("ws://test")
        assert conn.send(EndPhase())
        assert conn.outbound.get_nowait() == {"type": "end_phase"}

    def test_send_drops_when_full(self):
        conn = Connection("ws://test", outbound_size=1)
        assert conn.send(EndPhase())
        assert not conn.send(EndPhase())
        assert conn.dropped_outbound == 1
        assert conn.outbound.qsize() == 1

    def test_drain_inbound_keeps_order(self):
        conn = Connection("ws://test")
        for i in range(3):
            conn.inbound.put_nowait({"type": "x", "n": i})
        assert [m["n"] for m in conn.drain_inbound()] == [0, 1, 2]
        assert conn.drain_inbound() == []


# ---------------------------------------------------------------------------
# Reader / writer
# ---------------------------------------------------------------------------


class TestReaderWriter:
    @pytest.mark.asyncio
    async def test_read_loop_decodes_and_skips_garbage(self):
        conn = Connection("ws://test")
        ws = _FakeWebSocket([
            json.dumps({"type": "turn_changed", "payload": {"current_player": "p1"}}),
            "{{{",
            json.dumps({"type": "welcome"}),
        ])
        await conn._read_loop(ws)
        assert conn.drain_inbound() == [
            {"type": "turn_changed", "current_player": "p1"},
            {"type": "welcome"},
        ]

    @pytest.mark.asyncio
    async def test_write_loop_sends_envelopes(self):
        conn = Connection("ws://test")
        ws = _FakeWebSocket()
        conn.send(ClientReady(event_id="e1", event_type="combat"))
        task = asyncio.create_task(conn._write_loop(ws))
        for _ in range(3):
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(ws.sent) == 1
        frame = json.loads(ws.sent[0])
        assert frame["type"] == "client_ready"
        assert frame["payload"] == {"event_id": "e1", "event_type": "combat"}

    @pytest.mark.asyncio
    async def test_write_loop_flat_frames(self):
        conn = Connection("ws://test", envelope=False)
        ws = _FakeWebSocket()
        conn.send(EndPhase())
        task = asyncio.create_task(conn._write_loop(ws))
        for _ in range(3):
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert json.loads(ws.sent[0]) == {"type": "end_phase"}

    @pytest.mark.asyncio
    async def test_second_session_announces_reconnect(self):
        conn = Connection("ws://test")
        await conn._serve(_FakeWebSocket([json.dumps({"type": "welcome"})]))
        assert conn.drain_inbound() == [{"type": "welcome"}]
        assert not conn.is_connected

        await conn._serve(_FakeWebSocket([json.dumps({"type": "game_state"})]))
        assert conn.sessions == 2
        assert [m["type"] for m in conn.drain_inbound()] == ["reconnected", "game_state"]

    @pytest.mark.asyncio
    async def test_second_session_discards_unsent_messages(self):
        conn = Connection("ws://test")
        await conn._serve(_FakeWebSocket())
        conn.send(ClientReady(event_id="e1", event_type="combat"))
        ws = _FakeWebSocket()
        await conn._serve(ws)
        assert conn.outbound.empty()
        assert ws.sent == []


class TestDiscardOutbound:
    def test_returns_count_and_empties(self):
        conn = Connection("ws://test")
        conn.send(EndPhase())
        conn.send(ClientReady(event_id="e1", event_type="combat"))
        assert conn.discard_outbound() == 2
        assert conn.outbound.empty()
        assert conn.discard_outbound() == 0

    def test_later_sends_still_queue(self):
        conn = Connection("ws://test")
        conn.send(EndPhase())
        conn.discard_outbound()
        conn.send(ClientReady(event_id="e2", event_type="combat"))
        assert conn.outbound.get_nowait()["event_id"] == "e2"
