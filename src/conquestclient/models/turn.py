"""Turn model — round, phase and turn holder.

The server broadcasts the whole turn state on every phase or turn
change; the client never advances it on its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Phase(Enum):
    """Phases of a round, in play order.

    Values are the display names the server puts on the wire.
    """

    TERRITORY_SELECTION = "Territory Selection"
    PRODUCTION = "Production"
    TRADE = "Trade"
    SHIPMENT = "Shipment"
    CONQUEST = "Conquest"
    DEVELOPMENT = "Development"

    @classmethod
    def parse(cls, raw: str) -> Phase:
        """Parse a wire phase name.

        Accepts the display name ("Territory Selection") as well as the
        snake_case form ("territory_selection").
        """
        for phase in cls:
            if raw == phase.value or raw.lower() == phase.name.lower():
                return phase
        raise ValueError(f"Unknown phase: {raw!r}")


ACTION_PHASES: frozenset[Phase] = frozenset({
    Phase.TERRITORY_SELECTION,
    Phase.TRADE,
    Phase.SHIPMENT,
    Phase.CONQUEST,
    Phase.DEVELOPMENT,
})
"""Phases in which the turn holder acts and may end the turn.

Production is simultaneous and automatic, so it is not one of them.
"""


def phase_sequence(round_number: int) -> list[Phase]:
    """Return the phase order for a round.

    Round 1 opens with territory selection and has no development phase;
    later rounds start with development.
    """
    if round_number <= 1:
        return [
            Phase.TERRITORY_SELECTION,
            Phase.PRODUCTION,
            Phase.TRADE,
            Phase.SHIPMENT,
            Phase.CONQUEST,
        ]
    return [
        Phase.DEVELOPMENT,
        Phase.PRODUCTION,
        Phase.TRADE,
        Phase.SHIPMENT,
        Phase.CONQUEST,
    ]


class LocalAction(Enum):
    """Phase-specific actions the local player can issue."""

    CLAIM_TERRITORY = "claim_territory"
    TRADE = "trade"
    SHIP = "ship"
    ATTACK = "attack"
    BUILD = "build"

    @property
    def phase(self) -> Phase:
        """The only phase in which this action is legal."""
        return _ACTION_PHASE[self]


_ACTION_PHASE: dict[LocalAction, Phase] = {
    LocalAction.CLAIM_TERRITORY: Phase.TERRITORY_SELECTION,
    LocalAction.TRADE: Phase.TRADE,
    LocalAction.SHIP: Phase.SHIPMENT,
    LocalAction.ATTACK: Phase.CONQUEST,
    LocalAction.BUILD: Phase.DEVELOPMENT,
}


@dataclass(frozen=True)
class TurnState:
    """Authoritative turn state as last broadcast by the server.

    Attributes:
        round: Round number, starting at 1.
        phase: Active phase of the round.
        turn_holder: Player ID whose turn it is.
    """

    round: int
    phase: Phase
    turn_holder: str

    def __post_init__(self) -> None:
        if self.round < 1:
            raise ValueError(f"round must be positive, got {self.round}")
