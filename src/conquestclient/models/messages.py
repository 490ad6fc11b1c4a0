"""Network message models.

Typed Pydantic models for all client ↔ server messages on the combat
path. Each message type gets its own model with validation, so raw
dicts are checked once here and never read field-by-field elsewhere.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from conquestclient.models.attack import (
    AllyBreakdown,
    ReinforcementOption,
    ReinforcementSelection,
    UnitType,
)
from conquestclient.models.cards import CombatCard
from conquestclient.models.turn import Phase


# -- Base ----------------------------------------------------------------

class GameMessage(BaseModel):
    """Base class for all game messages."""

    model_config = ConfigDict(populate_by_name=True)

    type: str


def _reinforcement_fields(reinforcement: Optional[ReinforcementSelection]) -> dict[str, Any]:
    return reinforcement.to_wire() if reinforcement is not None else {}


# -- Outbound: attack ----------------------------------------------------

class AttackPreviewRequest(GameMessage):
    """Ask the server for a read-only preview of an attack."""

    type: Literal["plan_attack"] = "plan_attack"
    target_territory: str


class RequestAttackPlan(GameMessage):
    """Submit a plan; the server runs the alliance vote before replying."""

    type: Literal["request_attack_plan"] = "request_attack_plan"
    target_territory: str
    request_id: str
    bring_unit: str = ""
    bring_from: str = ""
    water_body_id: str = ""
    carry_weapon: bool = False
    weapon_from: str = ""
    carry_horse: bool = False
    horse_from: str = ""

    @classmethod
    def build(cls, target: str, request_id: str,
              reinforcement: Optional[ReinforcementSelection] = None) -> RequestAttackPlan:
        return cls(target_territory=target, request_id=request_id,
                   **_reinforcement_fields(reinforcement))


class ExecuteAttack(GameMessage):
    """Execute a resolved plan.

    ``attack_card_ids`` is None for a plain plan execution and a list
    (possibly empty) when the attack goes through card combat.
    """

    type: Literal["execute_attack"] = "execute_attack"
    target_territory: str
    plan_id: str
    bring_unit: str = ""
    bring_from: str = ""
    water_body_id: str = ""
    carry_weapon: bool = False
    weapon_from: str = ""
    carry_horse: bool = False
    horse_from: str = ""
    attack_card_ids: Optional[list[str]] = None

    @classmethod
    def with_plan(cls, target: str, plan_id: str,
                  reinforcement: Optional[ReinforcementSelection] = None) -> ExecuteAttack:
        return cls(target_territory=target, plan_id=plan_id,
                   **_reinforcement_fields(reinforcement))

    @classmethod
    def with_cards(cls, target: str, plan_id: str,
                   reinforcement: Optional[ReinforcementSelection],
                   card_ids: list[str]) -> ExecuteAttack:
        return cls(target_territory=target, plan_id=plan_id,
                   attack_card_ids=list(card_ids),
                   **_reinforcement_fields(reinforcement))


class CancelAttack(GameMessage):
    type: Literal["cancel_attack"] = "cancel_attack"
    plan_id: str = ""
    request_id: str = ""
    target_territory: str = ""


class AllianceVote(GameMessage):
    type: Literal["alliance_vote"] = "alliance_vote"
    battle_id: str
    side: Literal["attacker", "defender", "neutral"]


class SelectDefenseCards(GameMessage):
    type: Literal["select_defense_cards"] = "select_defense_cards"
    battle_id: str = ""
    card_ids: list[str] = []


# -- Outbound: flow ------------------------------------------------------

class ClientReady(GameMessage):
    """Acknowledge that a server event finished playing locally."""

    type: Literal["client_ready"] = "client_ready"
    event_id: str
    event_type: str


class EndPhase(GameMessage):
    type: Literal["end_phase"] = "end_phase"


# -- Inbound: system -----------------------------------------------------

class WelcomeMessage(GameMessage):
    type: Literal["welcome"] = "welcome"
    server_version: str = ""


class ErrorMessage(GameMessage):
    type: Literal["error"] = "error"
    code: str = ""
    message: str = ""


class Reconnected(GameMessage):
    """Injected by the transport after a session was re-established."""

    type: Literal["reconnected"] = "reconnected"


# -- Inbound: turn -------------------------------------------------------

class _PhaseField(GameMessage):
    @field_validator("phase", mode="before", check_fields=False)
    @classmethod
    def _parse_phase(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Phase.parse(value)
        return value


class PhaseChanged(_PhaseField):
    """Turn update: round, phase and turn holder."""

    type: Literal["phase_changed"] = "phase_changed"
    phase: Phase
    round: int = Field(ge=1)
    current_player: str
    skipped: bool = False


class TurnChanged(GameMessage):
    type: Literal["turn_changed"] = "turn_changed"
    current_player: str
    time_limit: int = 0


class GameStateSnapshot(_PhaseField):
    """Full snapshot sent on join and after reconnect.

    ``combat_mode`` and ``cards`` are None when the server leaves them
    out; the client then keeps what it has.
    """

    type: Literal["game_state"] = "game_state"
    phase: Phase
    round: int = Field(ge=1)
    current_player: str
    combat_mode: Optional[Literal["classic", "cards"]] = None
    cards: Optional[list[CombatCard]] = None


# -- Inbound: attack -----------------------------------------------------

class ReinforcementOptionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    unit_type: UnitType
    from_territory: str = Field(alias="from")
    water_body_id: str = ""
    strength_bonus: int = 0
    can_carry_weapon: bool = False
    can_carry_horse: bool = False
    weapon_available_at: str = ""
    horse_available_at: str = ""

    def to_option(self) -> ReinforcementOption:
        return ReinforcementOption(
            unit_type=self.unit_type,
            from_territory=self.from_territory,
            water_body_id=self.water_body_id,
            strength_bonus=self.strength_bonus,
            can_carry_weapon=self.can_carry_weapon,
            can_carry_horse=self.can_carry_horse,
            weapon_available_at=self.weapon_available_at,
            horse_available_at=self.horse_available_at,
        )


class AttackPreview(GameMessage):
    type: Literal["attack_preview"] = "attack_preview"
    target_territory: str
    attack_strength: int = 0
    defense_strength: int = 0
    attacker_ally_strength: int = 0
    defender_ally_strength: int = 0
    can_attack: bool = True
    available_reinforcements: list[ReinforcementOptionModel] = []


class AllyContribution(BaseModel):
    player_id: str = ""
    name: str = ""
    side: Literal["attacker", "defender"]
    strength: int = 0

    def to_breakdown(self) -> AllyBreakdown:
        return AllyBreakdown(player_id=self.player_id, name=self.name,
                             side=self.side, strength=self.strength)


class AttackPlanResolved(GameMessage):
    """Alliance vote finished; strengths already include ally help."""

    type: Literal["attack_plan_resolved"] = "attack_plan_resolved"
    plan_id: str
    request_id: str = ""
    target_territory: str = ""
    resolved_attack_strength: int
    resolved_defense_strength: int
    ally_breakdowns: list[AllyContribution] = []


class AllianceRequest(GameMessage):
    """Sent to third-party neighbours asked to join a battle."""

    type: Literal["alliance_request"] = "alliance_request"
    battle_id: str
    attacker_id: str = ""
    attacker_name: str = ""
    defender_id: str = ""
    defender_name: str = ""
    territory_id: str = ""
    territory_name: str = ""
    your_strength: int = 0
    time_limit: int = 0  # seconds
    expires_at: int = 0  # unix timestamp


class AllianceResult(GameMessage):
    type: Literal["alliance_result"] = "alliance_result"
    battle_id: str
    accepted: bool = False


class DefenseCardRequest(GameMessage):
    """The local player is being attacked and may play defense cards."""

    type: Literal["defense_card_request"] = "defense_card_request"
    battle_id: str = ""
    attacker_name: str = ""
    territory_id: str = ""
    territory_name: str = ""
    attacker_card_count: int = 0
    base_attack_strength: int = 0
    base_defense_strength: int = 0
    time_limit: int = 0  # seconds, 0 = client default


class CardDrawn(GameMessage):
    type: Literal["card_drawn"] = "card_drawn"
    card: CombatCard


# -- Inbound: game events (acknowledged with client_ready) ---------------

class CombatResult(GameMessage):
    type: Literal["combat_result"] = "combat_result"
    event_id: str = ""
    plan_id: str = ""
    attacker_id: str = ""
    defender_id: str = ""
    attacker_wins: bool
    attack_strength: int = 0
    defense_strength: int = 0
    target_territory: str
    stockpile_captured: bool = False
    captured: dict[str, int] = {}
    captured_from_territory: str = ""


class CardReveal(GameMessage):
    type: Literal["card_reveal"] = "card_reveal"
    event_id: str = ""
    battle_id: str = ""
    attacker_cards: list[CombatCard] = []
    defender_cards: list[CombatCard] = []
    negated_cards: list[str] = []
    final_attack_strength: int = 0
    final_defense_strength: int = 0
    attacker_wins: bool = False
    bribe_activated: bool = False
    sabotage_count: int = 0
    safe_retreat: bool = False

    @property
    def has_cards(self) -> bool:
        return bool(self.attacker_cards or self.defender_cards)


class ProductionItem(BaseModel):
    territory_id: str
    territory_name: str = ""
    resource_type: str
    amount: int = 0
    destination_id: str = ""
    destination_name: str = ""


class ProductionResults(GameMessage):
    type: Literal["production_results"] = "production_results"
    event_id: str = ""
    productions: list[ProductionItem] = []
    stockpile_territory_id: str = ""


class StockpileCaptured(GameMessage):
    type: Literal["stockpile_captured"] = "stockpile_captured"
    event_id: str = ""
    from_territory: str = ""
    to_territory: str = ""
    resources: dict[str, int] = {}


class PhaseSkipped(GameMessage):
    type: Literal["phase_skipped"] = "phase_skipped"
    event_id: str = ""
    phase: str
    reason: str = ""


# -- Message type registry -----------------------------------------------

MESSAGE_TYPES: dict[str, type[GameMessage]] = {
    # Outbound
    "plan_attack": AttackPreviewRequest,
    "request_attack_plan": RequestAttackPlan,
    "execute_attack": ExecuteAttack,
    "cancel_attack": CancelAttack,
    "alliance_vote": AllianceVote,
    "select_defense_cards": SelectDefenseCards,
    "client_ready": ClientReady,
    "end_phase": EndPhase,
    # System
    "welcome": WelcomeMessage,
    "error": ErrorMessage,
    "reconnected": Reconnected,
    # Turn
    "phase_changed": PhaseChanged,
    "turn_changed": TurnChanged,
    "game_state": GameStateSnapshot,
    # Attack
    "attack_preview": AttackPreview,
    "attack_plan_resolved": AttackPlanResolved,
    "alliance_request": AllianceRequest,
    "alliance_result": AllianceResult,
    "defense_card_request": DefenseCardRequest,
    "card_drawn": CardDrawn,
    # Game events
    "combat_result": CombatResult,
    "card_reveal": CardReveal,
    "production_results": ProductionResults,
    "stockpile_captured": StockpileCaptured,
    "phase_skipped": PhaseSkipped,
}


def parse_message(data: dict[str, Any]) -> GameMessage:
    """Parse a raw dict into the appropriate typed message model.

    Raises:
        pydantic.ValidationError: if the payload does not match its type.
    """
    msg_type = data.get("type", "")
    model_cls = MESSAGE_TYPES.get(msg_type, GameMessage)
    return model_cls.model_validate(data)
