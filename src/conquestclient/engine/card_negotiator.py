"""Card combat negotiator — the one open card selection window.

Attack windows open while the local plan awaits attack cards; defense
windows open when the server says the local player is being attacked.
The two cannot coincide, so a second ``open`` is always a bug upstream
and is refused with a warning.

The negotiator only tracks the selection. Whoever opened the window
sends the matching execute/select message with the ids ``commit`` or
``skip`` returns.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from conquestclient.models.cards import CardSelectionWindow, CombatCard, WindowMode
from conquestclient.util.events import CardWindowClosed, CardWindowOpened, EventBus

log = logging.getLogger(__name__)


class CardCombatNegotiator:
    """Owns exactly one CardSelectionWindow at a time.

    Args:
        event_bus: Bus for window open/close notifications.
        default_defense_deadline_frames: Deadline for defense windows
            opened without one.
    """

    def __init__(self, event_bus: Optional[EventBus] = None,
                 default_defense_deadline_frames: int = 1800) -> None:
        self._events = event_bus
        self._default_defense_deadline = default_defense_deadline_frames
        self._window: Optional[CardSelectionWindow] = None

    @property
    def window(self) -> Optional[CardSelectionWindow]:
        return self._window

    @property
    def is_open(self) -> bool:
        return self._window is not None

    @property
    def mode(self) -> Optional[WindowMode]:
        return self._window.mode if self._window else None

    def open(
        self,
        mode: WindowMode,
        eligible_cards: Iterable[CombatCard],
        context_message: str = "",
        deadline_frames: Optional[int] = None,
    ) -> bool:
        """Open a selection window. False if one is already open."""
        if self._window is not None:
            log.warning("Card window already open (%s) — refusing %s window",
                        self._window.mode.value, mode.value)
            return False
        if mode == WindowMode.DEFENSE and not deadline_frames:
            deadline_frames = self._default_defense_deadline
        cards = {c.id: c for c in eligible_cards}
        self._window = CardSelectionWindow(
            mode=mode,
            eligible_cards=cards,
            context_message=context_message,
            deadline_frames=deadline_frames,
            remaining_frames=deadline_frames,
        )
        log.info("[STATE] Card window opened: %s, %d eligible, deadline=%s",
                 mode.value, len(cards), deadline_frames)
        if self._events is not None:
            self._events.emit(CardWindowOpened(mode=mode.value, card_count=len(cards),
                                               deadline_frames=deadline_frames))
        return True

    def toggle(self, card_id: str) -> bool:
        """Flip a card's selection. False if no window or card not eligible."""
        w = self._window
        if w is None:
            log.debug("toggle(%s) with no open window", card_id)
            return False
        if card_id not in w.eligible_cards:
            log.info("Card %s is not eligible in this window", card_id)
            return False
        if card_id in w.selected:
            w.selected.discard(card_id)
        else:
            w.selected.add(card_id)
        return True

    def commit(self) -> Optional[frozenset[str]]:
        """Close the window and return the selected ids (None if none open)."""
        return self._close(skipped=False)

    def skip(self) -> Optional[frozenset[str]]:
        """Close the window with an empty selection."""
        return self._close(skipped=True)

    def step(self, frames: int = 1) -> bool:
        """Advance the deadline. True once it has elapsed (window stays open)."""
        w = self._window
        if w is None or w.remaining_frames is None:
            return False
        w.remaining_frames = max(0, w.remaining_frames - frames)
        return w.remaining_frames == 0

    def _close(self, skipped: bool) -> Optional[frozenset[str]]:
        w = self._window
        if w is None:
            log.debug("No card window to close")
            return None
        chosen = frozenset() if skipped else frozenset(w.selected)
        w.selected.clear()
        self._window = None
        log.info("[STATE] Card window %s: %s, %d card(s)",
                 "skipped" if skipped else "committed", w.mode.value, len(chosen))
        if self._events is not None:
            self._events.emit(CardWindowClosed(mode=w.mode.value,
                                               card_ids=tuple(sorted(chosen)),
                                               skipped=skipped))
        return chosen
