"""WebSocket connection — the client's transport to the game server.

A reader task decodes frames into an inbound queue and a writer task
drains an outbound queue. The client loop only ever touches the two
queues: ``drain_inbound()`` once per tick and ``send()`` fire-and-forget.
Uses the ``websockets`` library with asyncio.

After the connection is re-established a synthetic ``reconnected``
message is queued ahead of anything the server sends, so the engine
drops in-flight state before the fresh snapshot arrives. Messages still
queued for the old session are discarded, never replayed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import websockets
from websockets.asyncio.client import ClientConnection, connect

from conquestclient.models.messages import GameMessage, Reconnected
from conquestclient.network.serialization import decode, encode, to_wire

log = logging.getLogger(__name__)


class Connection:
    """asyncio WebSocket client with inbound/outbound queues.

    Args:
        url: Server WebSocket URL.
        inbound_size: Capacity of the inbound queue.
        outbound_size: Capacity of the outbound queue; sends beyond it
            are dropped with a warning.
        ping_interval: Keep-alive ping interval in seconds.
        ping_timeout: Seconds to wait for a pong.
        max_size: Largest accepted frame in bytes.
        envelope: Wrap outbound messages in the server's envelope.
        reconnect_delay: Seconds between reconnect attempts.
    """

    def __init__(self, url: str, inbound_size: int = 256, outbound_size: int = 256,
                 ping_interval: int = 30, ping_timeout: int = 10,
                 max_size: int = 1_048_576, envelope: bool = True,
                 reconnect_delay: float = 2.0) -> None:
        self._url = url
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._max_size = max_size
        self._envelope = envelope
        self._reconnect_delay = reconnect_delay
        self.inbound: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=inbound_size)
        self.outbound: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=outbound_size)
        self._ws: Optional[ClientConnection] = None
        self._running = False
        self.sessions = 0
        self.dropped_outbound = 0

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    # -- Queues ----------------------------------------------------------

    def send(self, message: GameMessage) -> bool:
        """Queue a message for the writer task. Never blocks."""
        try:
            self.outbound.put_nowait(to_wire(message))
            return True
        except asyncio.QueueFull:
            self.dropped_outbound += 1
            log.warning("Outbound queue full, dropping %s", message.type)
            return False

    def discard_outbound(self) -> int:
        """Drop every message not yet written. Returns how many were dropped."""
        dropped = 0
        while True:
            try:
                self.outbound.get_nowait()
            except asyncio.QueueEmpty:
                break
            dropped += 1
        if dropped:
            log.info("Discarded %d outbound message(s) from the previous session", dropped)
        return dropped

    def drain_inbound(self) -> list[dict[str, Any]]:
        """Take every message received since the last call, in order."""
        items: list[dict[str, Any]] = []
        while True:
            try:
                items.append(self.inbound.get_nowait())
            except asyncio.QueueEmpty:
                return items

    # -- Lifecycle -------------------------------------------------------

    async def run(self) -> None:
        """Connect and keep reconnecting until close() is called."""
        self._running = True
        while self._running:
            try:
                async with connect(
                    self._url,
                    ping_interval=self._ping_interval,
                    ping_timeout=self._ping_timeout,
                    max_size=self._max_size,
                ) as ws:
                    await self._serve(ws)
            except (OSError, websockets.InvalidHandshake) as e:
                log.warning("Connection to %s failed: %s", self._url, e)
            if self._running:
                log.info("Reconnecting in %.1f s …", self._reconnect_delay)
                await asyncio.sleep(self._reconnect_delay)

    async def close(self) -> None:
        """Stop reconnecting and close the current connection."""
        self._running = False
        if self._ws is not None:
            await self._ws.close()

    async def _serve(self, ws: ClientConnection) -> None:
        """Run reader and writer on one established connection."""
        self._ws = ws
        self.sessions += 1
        log.info("Connected to %s (session %d)", self._url, self.sessions)
        if self.sessions > 1:
            self.discard_outbound()
            await self.inbound.put(to_wire(Reconnected()))
        writer = asyncio.create_task(self._write_loop(ws))
        try:
            await self._read_loop(ws)
        finally:
            writer.cancel()
            self._ws = None
            log.info("Disconnected from %s", self._url)

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                try:
                    data = decode(raw)
                except ValueError as e:
                    log.warning("Dropping undecodable frame: %s", e)
                    continue
                await self.inbound.put(data)
        except websockets.ConnectionClosed as e:
            log.info("Connection closed: %s", e)

    async def _write_loop(self, ws: Any) -> None:
        while True:
            data = await self.outbound.get()
            try:
                await ws.send(encode(data, envelope=self._envelope))
            except websockets.ConnectionClosed:
                log.warning("Send of %s failed — connection closed", data.get("type"))
                return
