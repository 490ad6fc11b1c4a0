"""UI intents — plain values produced by local input.

The UI never calls into the engine through captured callbacks; it
queues one of these and the client loop hands it to the coordinator on
the next tick.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Union

from conquestclient.models.attack import ReinforcementSelection


# -- Attack --------------------------------------------------------------

@dataclass(frozen=True)
class ShowPreview:
    target_territory: str


@dataclass(frozen=True)
class SelectReinforcement:
    """Pick (or clear, with None) the unit brought into the attack."""
    selection: Optional[ReinforcementSelection]


@dataclass(frozen=True)
class SubmitPlan:
    pass


@dataclass(frozen=True)
class ConfirmAttack:
    pass


@dataclass(frozen=True)
class CancelAttack:
    reason: str = "cancelled by player"


# -- Cards ---------------------------------------------------------------

@dataclass(frozen=True)
class ToggleCard:
    card_id: str


@dataclass(frozen=True)
class CommitCards:
    pass


@dataclass(frozen=True)
class SkipCards:
    pass


# -- Alliance ------------------------------------------------------------

@dataclass(frozen=True)
class VoteAlliance:
    side: Literal["attacker", "defender", "neutral"]


# -- Turn / playback -----------------------------------------------------

@dataclass(frozen=True)
class EndTurn:
    pass


@dataclass(frozen=True)
class PlaybackFinished:
    """The presenter finished playing the live event."""
    event_id: Optional[str] = None


Intent = Union[
    ShowPreview,
    SelectReinforcement,
    SubmitPlan,
    ConfirmAttack,
    CancelAttack,
    ToggleCard,
    CommitCards,
    SkipCards,
    VoteAlliance,
    EndTurn,
    PlaybackFinished,
]
