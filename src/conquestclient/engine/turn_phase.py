"""Turn phase controller — round, phase and turn holder.

Single source of truth for whose turn it is and which phase is active.
Gates phase-specific local actions and decides when "End Turn" may be
offered. The server is authoritative: every broadcast replaces the
local state wholesale, except updates from an older round.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Union

from conquestclient.models.messages import EndPhase, GameMessage
from conquestclient.models.turn import (
    ACTION_PHASES,
    LocalAction,
    Phase,
    TurnState,
    phase_sequence,
)
from conquestclient.util.events import EventBus, TurnStateChanged, YourTurnStarted

log = logging.getLogger(__name__)


class TurnPhaseController:
    """Tracks the shared turn state for the local player.

    Args:
        local_player_id: ID of the player running this client.
        send: Fire-and-forget outbound message sink.
        event_bus: Bus for turn notifications.
    """

    def __init__(
        self,
        local_player_id: str,
        send: Callable[[GameMessage], None],
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self.local_player_id = local_player_id
        self._send = send
        self._events = event_bus
        self._state: Optional[TurnState] = None
        self._attack_flow_active: Callable[[], bool] = lambda: False

    def bind_attack_flow(self, is_active: Callable[[], bool]) -> None:
        """Tell the controller how to ask whether an attack is in progress."""
        self._attack_flow_active = is_active

    @property
    def state(self) -> Optional[TurnState]:
        return self._state

    # -- Server updates --------------------------------------------------

    def apply_turn_update(self, round: int, phase: Union[Phase, str], turn_holder: str) -> bool:
        """Replace the turn state from a server broadcast.

        Returns:
            False if the update belongs to an older round and was ignored.
        """
        if self._state is not None and round < self._state.round:
            log.debug("Ignoring stale turn update: round %d < %d", round, self._state.round)
            return False
        self._replace(TurnState(round=round, phase=_as_phase(phase), turn_holder=turn_holder))
        return True

    def apply_turn_holder(self, turn_holder: str) -> bool:
        """Update only the turn holder (round and phase are kept)."""
        if self._state is None:
            log.debug("Turn holder update before any turn state — ignored")
            return False
        self._replace(TurnState(round=self._state.round, phase=self._state.phase,
                                turn_holder=turn_holder))
        return True

    def resync(self, round: int, phase: Union[Phase, str], turn_holder: str) -> None:
        """Adopt a snapshot unconditionally (after reconnect)."""
        log.info("[STATE] Turn resync: round %d, %s", round, _as_phase(phase).value)
        self._replace(TurnState(round=round, phase=_as_phase(phase), turn_holder=turn_holder))

    def _replace(self, new: TurnState) -> None:
        if new.phase not in phase_sequence(new.round):
            log.warning("Phase %s is not part of round %d; adopting it anyway",
                        new.phase.value, new.round)
        was_mine = self.is_my_turn()
        self._state = new
        log.info("[STATE] Turn: round %d, %s, holder=%s",
                 new.round, new.phase.value, new.turn_holder)
        if self._events is None:
            return
        self._events.emit(TurnStateChanged(round=new.round, phase=new.phase.value,
                                           turn_holder=new.turn_holder))
        if not was_mine and self.is_my_turn():
            self._events.emit(YourTurnStarted(round=new.round, phase=new.phase.value))

    # -- Queries ---------------------------------------------------------

    def is_my_turn(self) -> bool:
        return self._state is not None and self._state.turn_holder == self.local_player_id

    def is_action_phase(self) -> bool:
        return self._state is not None and self._state.phase in ACTION_PHASES

    def is_action_legal(self, action: LocalAction) -> bool:
        """Whether the local player may issue ``action`` right now."""
        if not self.is_my_turn() or self._state.phase != action.phase:
            return False
        if action == LocalAction.ATTACK and self._attack_flow_active():
            return False
        return True

    def upcoming_phases(self) -> list[Phase]:
        """Phases still to come in the current round, in order."""
        state = self._state
        if state is None:
            return []
        sequence = phase_sequence(state.round)
        if state.phase not in sequence:
            return []
        return sequence[sequence.index(state.phase) + 1:]

    def can_end_turn(self) -> bool:
        return (self.is_my_turn()
                and self.is_action_phase()
                and not self._attack_flow_active())

    # -- Actions ---------------------------------------------------------

    def end_turn(self) -> bool:
        """Send ``end_phase`` if the turn may end now."""
        if not self.can_end_turn():
            log.info("End turn rejected (my_turn=%s, phase=%s, attack_active=%s)",
                     self.is_my_turn(),
                     self._state.phase.value if self._state else None,
                     self._attack_flow_active())
            return False
        log.info("Ending turn in %s", self._state.phase.value)
        self._send(EndPhase())
        return True


def _as_phase(phase: Union[Phase, str]) -> Phase:
    return phase if isinstance(phase, Phase) else Phase.parse(phase)
