"""Event acknowledgment queue — ordered playback of server outcomes.

The server pushes game events in the order its simulation resolved
them and waits for ``client_ready`` before advancing. This queue plays
them back strictly FIFO with at most one live event, and sends the
acknowledgment exactly once per event id.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Optional

from conquestclient.models.events import GameEvent
from conquestclient.models.messages import ClientReady, GameMessage
from conquestclient.util.events import EventBecameLive, EventBus, EventPlayed

log = logging.getLogger(__name__)


class EventAckQueue:
    """FIFO of game events awaiting local playback.

    Args:
        send: Fire-and-forget outbound message sink.
        event_bus: Bus on which ``EventBecameLive`` and ``EventPlayed`` are
            published. The presenter listens for the former.
        ack_memory: How many acknowledged ids are remembered for
            duplicate detection. The oldest are forgotten first.
    """

    def __init__(self, send: Callable[[GameMessage], None],
                 event_bus: Optional[EventBus] = None,
                 ack_memory: int = 1024) -> None:
        self._send = send
        self._events = event_bus
        self._queue: deque[GameEvent] = deque()
        self._live: Optional[GameEvent] = None
        self._acked: set[str] = set()
        self._ack_order: deque[str] = deque(maxlen=max(1, ack_memory))

    @property
    def live(self) -> Optional[GameEvent]:
        return self._live

    @property
    def pending(self) -> int:
        """Events waiting behind the live one."""
        return len(self._queue)

    def is_acknowledged(self, event_id: str) -> bool:
        return event_id in self._acked

    # -- Inbound ---------------------------------------------------------

    def enqueue(self, event: GameEvent) -> bool:
        """Append an event; start playback if nothing is live.

        Returns:
            False if the event was dropped (duplicate id or empty reveal
            that needs no ack).
        """
        if event.event_id and self._known(event.event_id):
            log.debug("Dropping duplicate event %s (%s)", event.event_id, event.kind.value)
            return False
        if event.is_empty_reveal and not event.requires_ack:
            log.debug("Dropping card reveal with no cards played")
            return False
        self._queue.append(event)
        log.debug("Queued event %s (%s), %d pending",
                  event.event_id or "-", event.kind.value, len(self._queue))
        self._promote()
        return True

    def _known(self, event_id: str) -> bool:
        if event_id in self._acked:
            return True
        if self._live is not None and self._live.event_id == event_id:
            return True
        return any(e.event_id == event_id for e in self._queue)

    # -- Playback --------------------------------------------------------

    def on_playback_complete(self, event_id: Optional[str] = None) -> bool:
        """Finish the live event, acknowledge it, promote the next.

        Args:
            event_id: If given, must name the live event; otherwise the
                call is ignored (a late or duplicate completion).

        Returns:
            True if the live event was completed by this call.
        """
        live = self._live
        if live is None:
            log.debug("Playback complete with no live event — ignored")
            return False
        if event_id is not None and event_id != live.event_id:
            log.debug("Playback complete for %s but %s is live — ignored",
                      event_id, live.event_id)
            return False
        self._finish(live)
        self._promote()
        return True

    def _finish(self, event: GameEvent) -> None:
        self._live = None
        if event.requires_ack and event.event_id not in self._acked:
            self._remember(event.event_id)
            self._send(ClientReady(event_id=event.event_id, event_type=event.kind.value))
            log.debug("Acknowledged event %s (%s)", event.event_id, event.kind.value)
        if self._events is not None:
            self._events.emit(EventPlayed(event=event))

    def _remember(self, event_id: str) -> None:
        if len(self._ack_order) == self._ack_order.maxlen:
            self._acked.discard(self._ack_order[0])
        self._ack_order.append(event_id)
        self._acked.add(event_id)

    def _promote(self) -> None:
        while self._live is None and self._queue:
            head = self._queue.popleft()
            if head.is_empty_reveal:
                # Nothing to show; acknowledge in order and move on.
                self._finish(head)
                continue
            self._live = head
            log.info("[STATE] Event live: %s (%s)", head.event_id or "-", head.kind.value)
            if self._events is not None:
                self._events.emit(EventBecameLive(event=head))

    # -- Reconnect -------------------------------------------------------

    def clear(self) -> None:
        """Drop live and queued events; acknowledged ids are remembered."""
        dropped = len(self._queue) + (1 if self._live is not None else 0)
        self._queue.clear()
        self._live = None
        if dropped:
            log.info("[STATE] Event queue cleared (%d dropped)", dropped)
