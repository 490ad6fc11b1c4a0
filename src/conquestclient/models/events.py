"""Game event model — server-pushed outcomes that are played back in order.

Every outcome the server wants each client to see before it moves on
(combat results, card reveals, production, captures, skipped phases) is
wrapped in a GameEvent and funnelled through the event queue.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from conquestclient.models.messages import (
    CardReveal,
    CombatResult,
    GameMessage,
    PhaseSkipped,
    ProductionResults,
    StockpileCaptured,
)


class GameEventKind(Enum):
    """Kinds of played-back events. Values are the wire event types."""

    COMBAT = "combat"
    PRODUCTION = "production"
    STOCKPILE_CAPTURE = "stockpile_capture"
    CARD_REVEAL = "card_reveal"
    PHASE_SKIP = "phase_skip"


_KIND_BY_MESSAGE: dict[type[GameMessage], GameEventKind] = {
    CombatResult: GameEventKind.COMBAT,
    ProductionResults: GameEventKind.PRODUCTION,
    StockpileCaptured: GameEventKind.STOCKPILE_CAPTURE,
    CardReveal: GameEventKind.CARD_REVEAL,
    PhaseSkipped: GameEventKind.PHASE_SKIP,
}


@dataclass(frozen=True)
class GameEvent:
    """A server outcome awaiting local playback.

    Attributes:
        event_id: Server-assigned event ID. Empty when no ack is expected.
        kind: What happened.
        payload: The typed inbound message carrying the details.
        requires_ack: Whether the server waits for ``client_ready``.
    """

    event_id: str
    kind: GameEventKind
    payload: GameMessage
    requires_ack: bool = True

    @classmethod
    def from_message(cls, message: GameMessage) -> Optional[GameEvent]:
        """Wrap an inbound message as an event, or None if it is not one.

        The server only expects an acknowledgment for events it gave an
        ID to.
        """
        kind = _KIND_BY_MESSAGE.get(type(message))
        if kind is None:
            return None
        event_id = getattr(message, "event_id", "")
        return cls(event_id=event_id, kind=kind, payload=message,
                   requires_ack=bool(event_id))

    @property
    def is_empty_reveal(self) -> bool:
        """A card reveal in which neither side played a card."""
        return (self.kind == GameEventKind.CARD_REVEAL
                and isinstance(self.payload, CardReveal)
                and not self.payload.has_cards)
