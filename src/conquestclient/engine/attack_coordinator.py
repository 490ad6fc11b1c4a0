"""Attack resolution coordinator — the local attack lifecycle.

Owns the single active AttackPlan and drives it through

  PREVIEWING → PLAN_SUBMITTED → AWAITING_ALLIANCE_RESOLUTION
    → AWAITING_CONFIRMATION → {AWAITING_ATTACK_CARDS | EXECUTING} → RESOLVED

with CANCELLED reachable from every state before EXECUTING (local
cancel) and from every state that awaits the server (rejection).

Also handles the card windows the server opens on the local player
(defense cards) and alliance vote prompts for neighbours' battles, since
both share the card negotiator and the frame timers with the plan.

All methods run on the client loop. Invalid local actions return False
and send nothing.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Callable, Optional

from conquestclient.engine.alliance_tracker import AllianceWaitTracker
from conquestclient.engine.card_negotiator import CardCombatNegotiator
from conquestclient.loaders.client_config_loader import ClientConfig
from conquestclient.models.attack import (
    AllianceVotePrompt,
    AttackPlan,
    AttackStatus,
    ReinforcementSelection,
)
from conquestclient.models.cards import CardHand, WindowMode
from conquestclient.models.events import GameEvent, GameEventKind
from conquestclient.models.messages import (
    AllianceRequest,
    AllianceVote,
    AttackPlanResolved,
    AttackPreview,
    AttackPreviewRequest,
    CancelAttack,
    CombatResult,
    DefenseCardRequest,
    ErrorMessage,
    ExecuteAttack,
    GameMessage,
    RequestAttackPlan,
    SelectDefenseCards,
)
from conquestclient.models.turn import LocalAction
from conquestclient.util.constants import (
    ATTACK_ERROR_CODES,
    COMBAT_MODE_CARDS,
    SIDE_ATTACKER,
    SIDE_DEFENDER,
    SIDE_NEUTRAL,
)
from conquestclient.util.events import (
    AllianceRequestReceived,
    AttackPlanChanged,
    AttackRejected,
    EventBus,
)

if TYPE_CHECKING:
    from conquestclient.engine.turn_phase import TurnPhaseController

log = logging.getLogger(__name__)

# States in which a request is outstanding on the server, so an error
# reply belongs to the plan.
_AWAITING_SERVER = frozenset({
    AttackStatus.PREVIEWING,
    AttackStatus.PLAN_SUBMITTED,
    AttackStatus.AWAITING_ALLIANCE_RESOLUTION,
    AttackStatus.EXECUTING,
})

# States after the server has been told about the plan.
_SUBMITTED = frozenset({
    AttackStatus.PLAN_SUBMITTED,
    AttackStatus.AWAITING_ALLIANCE_RESOLUTION,
    AttackStatus.AWAITING_CONFIRMATION,
    AttackStatus.AWAITING_ATTACK_CARDS,
})


class AttackResolutionCoordinator:
    """Drives the local attack plan and the card/alliance prompts.

    Args:
        local_player_id: ID of the player running this client.
        send: Fire-and-forget outbound message sink.
        hand: The local player's combat cards.
        negotiator: Card window owner.
        alliance: Alliance wait tracker for the local plan.
        config: Client settings (combat mode, deadlines, cancel policy).
        event_bus: Bus for plan and prompt notifications.
        turn: Optional turn controller gating when attacks may start.
    """

    def __init__(
        self,
        local_player_id: str,
        send: Callable[[GameMessage], None],
        hand: Optional[CardHand] = None,
        negotiator: Optional[CardCombatNegotiator] = None,
        alliance: Optional[AllianceWaitTracker] = None,
        config: Optional[ClientConfig] = None,
        event_bus: Optional[EventBus] = None,
        turn: Optional[TurnPhaseController] = None,
    ) -> None:
        self.local_player_id = local_player_id
        self._send = send
        self._config = config or ClientConfig()
        self._hand = hand if hand is not None else CardHand()
        self._negotiator = negotiator or CardCombatNegotiator(
            event_bus, self._config.frames(self._config.defense_deadline_s))
        self._alliance = alliance or AllianceWaitTracker()
        self._events = event_bus
        self._turn = turn
        self.combat_mode: str = self._config.combat_mode

        self._plan: Optional[AttackPlan] = None
        self._prompt: Optional[AllianceVotePrompt] = None
        self._defense_battle_id = ""

    # -- Queries ---------------------------------------------------------

    @property
    def plan(self) -> Optional[AttackPlan]:
        """Current or most recently finished plan."""
        return self._plan

    @property
    def hand(self) -> CardHand:
        return self._hand

    @property
    def negotiator(self) -> CardCombatNegotiator:
        return self._negotiator

    @property
    def alliance(self) -> AllianceWaitTracker:
        return self._alliance

    @property
    def alliance_prompt(self) -> Optional[AllianceVotePrompt]:
        return self._prompt

    def has_active_plan(self) -> bool:
        return self._plan is not None and self._plan.is_active

    def _status_is(self, *statuses: AttackStatus) -> bool:
        return self._plan is not None and self._plan.status in statuses

    def _set_status(self, status: AttackStatus, reason: str = "") -> None:
        plan = self._plan
        old = plan.status
        plan.status = status
        if status == AttackStatus.CANCELLED:
            plan.cancel_reason = reason
        log.info("[STATE] Attack on %s: %s → %s%s", plan.target_territory,
                 old.value, status.value, f" ({reason})" if reason else "")
        if self._events is not None:
            self._events.emit(AttackPlanChanged(target_territory=plan.target_territory,
                                                status=status.value, reason=reason))

    # -- Preview ---------------------------------------------------------

    def show_preview(self, target_territory: str) -> bool:
        """Start a plan against ``target_territory`` and ask for a preview."""
        if self.has_active_plan():
            log.info("Preview of %s rejected: attack on %s still %s", target_territory,
                     self._plan.target_territory, self._plan.status.value)
            return False
        if self._turn is not None and not self._turn.is_action_legal(LocalAction.ATTACK):
            log.info("Preview of %s rejected: attacking is not legal now", target_territory)
            return False
        self._plan = AttackPlan(attacker_id=self.local_player_id,
                                target_territory=target_territory)
        log.info("[STATE] Attack on %s: previewing", target_territory)
        if self._events is not None:
            self._events.emit(AttackPlanChanged(target_territory=target_territory,
                                                status=AttackStatus.PREVIEWING.value))
        self._send(AttackPreviewRequest(target_territory=target_territory))
        return True

    def on_attack_preview(self, msg: AttackPreview) -> bool:
        """Fill the plan with the server's preview numbers and options."""
        plan = self._plan
        if not self._status_is(AttackStatus.PREVIEWING) \
                or plan.target_territory != msg.target_territory:
            log.debug("Dropping preview for %s (no matching plan)", msg.target_territory)
            return False
        plan.base_attack_strength = msg.attack_strength + msg.attacker_ally_strength
        plan.base_defense_strength = msg.defense_strength + msg.defender_ally_strength
        plan.reinforcement_options = [o.to_option() for o in msg.available_reinforcements]
        if not msg.can_attack:
            self._set_status(AttackStatus.CANCELLED, "target cannot be attacked")
            return True
        log.debug("Preview for %s: %d vs %d, %d reinforcement option(s)",
                  plan.target_territory, plan.base_attack_strength,
                  plan.base_defense_strength, len(plan.reinforcement_options))
        return True

    def select_reinforcement(self, selection: Optional[ReinforcementSelection]) -> bool:
        """Choose (or clear) the unit brought into the attack."""
        if not self._status_is(AttackStatus.PREVIEWING):
            log.info("Reinforcement can only be chosen while previewing")
            return False
        plan = self._plan
        if selection is not None and not any(o.allows(selection)
                                             for o in plan.reinforcement_options):
            log.info("Reinforcement %s from %s is not available",
                     selection.unit_type.value, selection.from_territory)
            return False
        plan.reinforcement = selection
        return True

    # -- Plan submission -------------------------------------------------

    def submit_plan(self, reinforcement: Optional[ReinforcementSelection] = None) -> bool:
        """Send the plan; the server then runs the alliance vote.

        A ``reinforcement`` given here replaces any earlier selection.
        """
        if not self._status_is(AttackStatus.PREVIEWING):
            log.info("Plan submission rejected: %s",
                     "no preview" if self._plan is None or not self._plan.is_active
                     else f"plan already {self._plan.status.value}")
            return False
        if reinforcement is not None and not self.select_reinforcement(reinforcement):
            return False
        plan = self._plan
        plan.request_id = uuid.uuid4().hex
        self._send(RequestAttackPlan.build(plan.target_territory, plan.request_id,
                                           plan.reinforcement))
        self._set_status(AttackStatus.PLAN_SUBMITTED)
        cfg = self._config
        self._alliance.start(plan.request_id,
                             cfg.frames(cfg.alliance_wait_s + cfg.alliance_grace_s))
        self._set_status(AttackStatus.AWAITING_ALLIANCE_RESOLUTION)
        return True

    def on_plan_resolved(self, msg: AttackPlanResolved) -> bool:
        """Adopt the alliance vote's outcome for the current plan.

        Late resolutions (cancelled plan, other request) are dropped.
        """
        plan = self._plan
        if not self._status_is(AttackStatus.AWAITING_ALLIANCE_RESOLUTION):
            log.debug("Dropping plan resolution %s: no plan awaiting one", msg.plan_id)
            return False
        if msg.request_id:
            matches = msg.request_id == plan.request_id
        else:
            matches = msg.target_territory == plan.target_territory
        if not matches:
            log.debug("Dropping plan resolution %s for another request", msg.plan_id)
            return False
        self._alliance.resolve(plan.request_id)
        plan.plan_id = msg.plan_id
        plan.resolved_attack_strength = msg.resolved_attack_strength
        plan.resolved_defense_strength = msg.resolved_defense_strength
        plan.ally_breakdowns = [a.to_breakdown() for a in msg.ally_breakdowns]
        self._set_status(AttackStatus.AWAITING_CONFIRMATION)
        return True

    # -- Confirmation & cards --------------------------------------------

    def confirm(self) -> bool:
        """Confirm the resolved plan: open the attack card window or execute."""
        if not self._status_is(AttackStatus.AWAITING_CONFIRMATION):
            log.info("Confirm rejected: no resolved plan")
            return False
        plan = self._plan
        cards = self._hand.attack_cards
        if self.combat_mode == COMBAT_MODE_CARDS and cards:
            opened = self._negotiator.open(
                WindowMode.ATTACK, cards,
                context_message=f"Attack on {plan.target_territory}: "
                                f"{plan.resolved_attack_strength} vs {plan.resolved_defense_strength}",
            )
            if opened:
                self._set_status(AttackStatus.AWAITING_ATTACK_CARDS)
                return True
            log.warning("Attack card window unavailable — executing without cards")
        self._send(ExecuteAttack.with_plan(plan.target_territory, plan.plan_id,
                                           plan.reinforcement))
        self._set_status(AttackStatus.EXECUTING)
        return True

    def toggle_card(self, card_id: str) -> bool:
        return self._negotiator.toggle(card_id)

    def commit_cards(self) -> bool:
        """Commit the open window's selection and send it."""
        return self._close_window(skipped=False)

    def skip_cards(self) -> bool:
        """Close the open window without playing cards."""
        return self._close_window(skipped=True)

    def _close_window(self, skipped: bool) -> bool:
        mode = self._negotiator.mode
        if mode is None:
            log.info("No card window open")
            return False
        if mode == WindowMode.ATTACK and not self._status_is(AttackStatus.AWAITING_ATTACK_CARDS):
            log.warning("Attack card window open without a plan awaiting cards — closing")
            self._negotiator.skip()
            return False
        chosen = self._negotiator.skip() if skipped else self._negotiator.commit()
        card_ids = sorted(chosen)
        self._hand.remove(card_ids)
        if mode == WindowMode.ATTACK:
            plan = self._plan
            self._send(ExecuteAttack.with_cards(plan.target_territory, plan.plan_id,
                                                plan.reinforcement, card_ids))
            self._set_status(AttackStatus.EXECUTING)
        else:
            self._send(SelectDefenseCards(battle_id=self._defense_battle_id, card_ids=card_ids))
            self._defense_battle_id = ""
        return True

    def on_defense_card_request(self, msg: DefenseCardRequest) -> bool:
        """The local player is being attacked: open the defense window."""
        cards = self._hand.defense_cards
        if not cards:
            log.info("Defense cards requested for %s but none held — sending empty selection",
                     msg.territory_name or msg.territory_id)
            self._send(SelectDefenseCards(battle_id=msg.battle_id, card_ids=[]))
            return False
        if msg.time_limit > 0:
            deadline = self._config.frames(msg.time_limit)
        else:
            deadline = self._config.frames(self._config.defense_deadline_s)
        opened = self._negotiator.open(
            WindowMode.DEFENSE, cards,
            context_message=f"{msg.attacker_name} attacks {msg.territory_name}: "
                            f"{msg.base_attack_strength} vs {msg.base_defense_strength}",
            deadline_frames=deadline,
        )
        if not opened:
            self._send(SelectDefenseCards(battle_id=msg.battle_id, card_ids=[]))
            return False
        self._defense_battle_id = msg.battle_id
        return True

    # -- Timers ----------------------------------------------------------

    def step(self, frames: int = 1) -> None:
        """Advance alliance, prompt and card deadlines by ``frames``."""
        if self._alliance.step(frames) and self._status_is(AttackStatus.AWAITING_ALLIANCE_RESOLUTION):
            self.cancel("alliance vote timed out")

        if self._prompt is not None:
            self._prompt.remaining_frames -= frames
            if self._prompt.remaining_frames <= 0:
                log.info("Alliance prompt for battle %s expired without a vote",
                         self._prompt.battle_id)
                self._prompt = None

        if self._negotiator.step(frames) and self._negotiator.mode == WindowMode.DEFENSE:
            log.info("Defense card deadline elapsed — committing current selection")
            self.commit_cards()

    # -- Cancellation & rejection ----------------------------------------

    def cancel(self, reason: str = "cancelled by player") -> bool:
        """Abort the plan before execution.

        Once the server knows about the plan it is told as well, if so
        configured; otherwise its own vote timeout cleans up.
        """
        if not self.has_active_plan() or self._status_is(AttackStatus.EXECUTING):
            log.info("Cancel rejected: %s", "attack already executing"
                     if self._status_is(AttackStatus.EXECUTING) else "no active plan")
            return False
        plan = self._plan
        if self._status_is(AttackStatus.AWAITING_ATTACK_CARDS) \
                and self._negotiator.mode == WindowMode.ATTACK:
            self._negotiator.skip()
        if self._status_is(*_SUBMITTED) and self._config.notify_server_on_cancel:
            self._send(CancelAttack(plan_id=plan.plan_id, request_id=plan.request_id,
                                    target_territory=plan.target_territory))
        self._alliance.cancel()
        self._set_status(AttackStatus.CANCELLED, reason)
        return True

    def on_server_error(self, msg: ErrorMessage) -> bool:
        """Fail the plan if the server rejected what it was waiting on."""
        if msg.code not in ATTACK_ERROR_CODES or not self._status_is(*_AWAITING_SERVER):
            return False
        plan = self._plan
        reason = msg.message or msg.code
        self._alliance.cancel()
        self._set_status(AttackStatus.CANCELLED, reason)
        if self._events is not None:
            self._events.emit(AttackRejected(target_territory=plan.target_territory,
                                             code=msg.code, reason=reason))
        return True

    # -- Outcome ---------------------------------------------------------

    def on_event_played(self, event: GameEvent) -> bool:
        """Resolve the executing plan once its combat result has been shown."""
        if event.kind != GameEventKind.COMBAT or not isinstance(event.payload, CombatResult):
            return False
        if not self._status_is(AttackStatus.EXECUTING):
            return False
        plan = self._plan
        result = event.payload
        if result.plan_id:
            matches = result.plan_id == plan.plan_id
        else:
            matches = (result.target_territory == plan.target_territory
                       and result.attacker_id in ("", plan.attacker_id))
        if not matches:
            return False
        plan.attacker_wins = result.attacker_wins
        log.info("Attack on %s %s (%d vs %d)", plan.target_territory,
                 "won" if result.attacker_wins else "lost",
                 result.attack_strength, result.defense_strength)
        self._set_status(AttackStatus.RESOLVED)
        return True

    # -- Alliance prompts (third-party battles) --------------------------

    def on_alliance_request(self, msg: AllianceRequest) -> None:
        if self._prompt is not None:
            log.info("Alliance prompt for battle %s replaced by %s",
                     self._prompt.battle_id, msg.battle_id)
        seconds = msg.time_limit if msg.time_limit > 0 else self._config.alliance_prompt_s
        self._prompt = AllianceVotePrompt(
            battle_id=msg.battle_id,
            attacker_name=msg.attacker_name,
            defender_name=msg.defender_name,
            territory_name=msg.territory_name,
            your_strength=msg.your_strength,
            remaining_frames=self._config.frames(seconds),
        )
        if self._events is not None:
            self._events.emit(AllianceRequestReceived(
                battle_id=msg.battle_id,
                attacker_name=msg.attacker_name,
                defender_name=msg.defender_name,
                territory_name=msg.territory_name,
                your_strength=msg.your_strength,
                remaining_frames=self._prompt.remaining_frames,
            ))

    def vote_alliance(self, side: str) -> bool:
        if self._prompt is None:
            log.info("No alliance vote pending")
            return False
        if side not in (SIDE_ATTACKER, SIDE_DEFENDER, SIDE_NEUTRAL):
            log.info("Invalid alliance side: %s", side)
            return False
        self._send(AllianceVote(battle_id=self._prompt.battle_id, side=side))
        log.info("Voted %s in battle %s", side, self._prompt.battle_id)
        self._prompt = None
        return True

    # -- Reconnect -------------------------------------------------------

    def reset(self) -> None:
        """Discard all non-terminal state without telling the server."""
        if self._negotiator.is_open:
            self._negotiator.skip()
        self._alliance.cancel()
        self._prompt = None
        self._defense_battle_id = ""
        if self.has_active_plan():
            self._set_status(AttackStatus.CANCELLED, "connection reset")
