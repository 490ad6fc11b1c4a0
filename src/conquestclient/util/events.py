"""Typed event bus — decoupled communication between client components.

Engine components publish what happened; the UI, the presenter and
main's wiring subscribe. Components never hold references to the UI.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, TypeVar, Type

if TYPE_CHECKING:
    from conquestclient.models.events import GameEvent

T = TypeVar("T")


# -- Turn events ---------------------------------------------------------

@dataclass(frozen=True)
class TurnStateChanged:
    """The server broadcast a new round/phase/turn holder."""
    round: int
    phase: str
    turn_holder: str


@dataclass(frozen=True)
class YourTurnStarted:
    """The local player just became the turn holder."""
    round: int
    phase: str


# -- Attack events -------------------------------------------------------

@dataclass(frozen=True)
class AttackPlanChanged:
    """The local attack plan moved to a new status."""
    target_territory: str
    status: str  # AttackStatus value
    reason: str = ""


@dataclass(frozen=True)
class AttackRejected:
    """The server refused a plan or execution."""
    target_territory: str
    code: str
    reason: str


@dataclass(frozen=True)
class AllianceRequestReceived:
    """A neighbour's battle asks the local player to pick a side."""
    battle_id: str
    attacker_name: str
    defender_name: str
    territory_name: str
    your_strength: int
    remaining_frames: int


# -- Card events ---------------------------------------------------------

@dataclass(frozen=True)
class CardWindowOpened:
    mode: str  # "attack" or "defense"
    card_count: int
    deadline_frames: int | None


@dataclass(frozen=True)
class CardWindowClosed:
    mode: str
    card_ids: tuple[str, ...]
    skipped: bool


# -- Playback events -----------------------------------------------------

@dataclass(frozen=True)
class EventBecameLive:
    """A queued game event is now the one being played back."""
    event: GameEvent


@dataclass(frozen=True)
class EventPlayed:
    """Playback of a game event finished (and was acknowledged if needed)."""
    event: GameEvent


# -- Event Bus -----------------------------------------------------------

class EventBus:
    """Simple synchronous event bus with typed events.

    Usage:
        bus = EventBus()
        bus.on(YourTurnStarted, lambda e: print(e.round))
        bus.emit(YourTurnStarted(round=2, phase="Trade"))
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def on(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Unregister a handler."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: object) -> None:
        """Emit an event to all registered handlers."""
        for handler in list(self._handlers.get(type(event), [])):
            handler(event)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
