"""Combat card models — dealt cards, the local hand, selection windows.

Cards are dealt by the server and never change afterwards; the client
only ever refers to them by id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field


class CardRarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    ULTRA_RARE = "ultra_rare"


class CardType(str, Enum):
    ATTACK = "attack"
    DEFENSE = "defense"


class CombatCard(BaseModel):
    """A card in a player's hand (immutable once dealt)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = ""
    rarity: CardRarity = CardRarity.COMMON
    card_type: CardType = Field(alias="cardType")
    description: str = ""


class WindowMode(str, Enum):
    """Which side a card selection window is choosing for."""

    ATTACK = "attack"
    DEFENSE = "defense"


@dataclass
class CardSelectionWindow:
    """An open card selection.

    Attributes:
        mode: Attack or defense selection.
        eligible_cards: Cards that may be selected, keyed by id.
        selected: Ids currently toggled on.
        context_message: Text shown alongside the selection.
        deadline_frames: Total frames allowed, None for no deadline.
        remaining_frames: Frames left before the deadline elapses.
    """

    mode: WindowMode
    eligible_cards: dict[str, CombatCard]
    context_message: str = ""
    selected: set[str] = field(default_factory=set)
    deadline_frames: Optional[int] = None
    remaining_frames: Optional[int] = None


class CardHand:
    """The local player's combat cards, keyed by id."""

    def __init__(self, cards: Iterable[CombatCard] = ()) -> None:
        self._cards: dict[str, CombatCard] = {}
        self.replace(cards)

    def replace(self, cards: Iterable[CombatCard]) -> None:
        """Replace the whole hand (snapshot)."""
        self._cards = {c.id: c for c in cards}

    def add(self, card: CombatCard) -> None:
        self._cards[card.id] = card

    def remove(self, card_ids: Iterable[str]) -> None:
        for cid in card_ids:
            self._cards.pop(cid, None)

    def get(self, card_id: str) -> Optional[CombatCard]:
        return self._cards.get(card_id)

    def of_type(self, card_type: CardType) -> list[CombatCard]:
        return [c for c in self._cards.values() if c.card_type == card_type]

    @property
    def attack_cards(self) -> list[CombatCard]:
        return self.of_type(CardType.ATTACK)

    @property
    def defense_cards(self) -> list[CombatCard]:
        return self.of_type(CardType.DEFENSE)

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._cards
