"""Attack plan model — state machine for one attack negotiation.

An AttackPlan tracks a local attack from the first preview through the
alliance vote, confirmation, optional card play and execution:

  PREVIEWING → PLAN_SUBMITTED → AWAITING_ALLIANCE_RESOLUTION
    → AWAITING_CONFIRMATION → {AWAITING_ATTACK_CARDS | EXECUTING} → RESOLVED

CANCELLED is reachable from every non-terminal phase.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class AttackStatus(Enum):
    """Phases of an attack plan."""

    PREVIEWING = "previewing"
    PLAN_SUBMITTED = "plan_submitted"
    AWAITING_ALLIANCE_RESOLUTION = "awaiting_alliance_resolution"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    AWAITING_ATTACK_CARDS = "awaiting_attack_cards"
    EXECUTING = "executing"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (AttackStatus.RESOLVED, AttackStatus.CANCELLED)


class UnitType(str, Enum):
    """Units that can be brought along as reinforcement."""

    STOCKPILE = "stockpile"
    HORSE = "horse"
    BOAT = "boat"


@dataclass(frozen=True)
class ReinforcementSelection:
    """An extra unit brought into an attack.

    Attributes:
        unit_type: Stockpile, horse or boat.
        from_territory: Territory the unit comes from (owned by the attacker).
        carry_weapon: Horse or boat carries a weapon.
        carry_horse: Boat carries a horse.
        water_body_id: Water body the boat travels on.
        weapon_from: Where the carried weapon is picked up. Empty means
            the source territory.
        horse_from: Where the carried horse is picked up. Empty means
            the source territory.
    """

    unit_type: UnitType
    from_territory: str
    carry_weapon: bool = False
    carry_horse: bool = False
    water_body_id: str = ""
    weapon_from: str = ""
    horse_from: str = ""

    def __post_init__(self) -> None:
        if not self.from_territory:
            raise ValueError("Reinforcement needs a source territory")
        if self.carry_weapon and self.unit_type == UnitType.STOCKPILE:
            raise ValueError("Only horses and boats can carry a weapon")
        if self.carry_horse and self.unit_type != UnitType.BOAT:
            raise ValueError("Only boats can carry a horse")
        if self.water_body_id and self.unit_type != UnitType.BOAT:
            raise ValueError("Only boats travel on a water body")
        if self.weapon_from and not self.carry_weapon:
            raise ValueError("weapon_from needs carry_weapon")
        if self.horse_from and not self.carry_horse:
            raise ValueError("horse_from needs carry_horse")

    def to_wire(self) -> dict[str, Any]:
        """Flat wire fields used by plan and execute requests."""
        data: dict[str, Any] = {
            "bring_unit": self.unit_type.value,
            "bring_from": self.from_territory,
        }
        if self.water_body_id:
            data["water_body_id"] = self.water_body_id
        if self.carry_weapon:
            data["carry_weapon"] = True
            data["weapon_from"] = self.weapon_from or self.from_territory
        if self.carry_horse:
            data["carry_horse"] = True
            data["horse_from"] = self.horse_from or self.from_territory
        return data


@dataclass(frozen=True)
class ReinforcementOption:
    """A reinforcement the server's preview says is available.

    Used only to disable impossible choices locally; the server
    revalidates everything at execution time.
    """

    unit_type: UnitType
    from_territory: str
    water_body_id: str = ""
    strength_bonus: int = 0
    can_carry_weapon: bool = False
    can_carry_horse: bool = False
    weapon_available_at: str = ""
    horse_available_at: str = ""

    def selection(self, carry_weapon: bool = False,
                  carry_horse: bool = False) -> ReinforcementSelection:
        """Build the selection for this option, picking cargo up where it is."""
        return ReinforcementSelection(
            unit_type=self.unit_type,
            from_territory=self.from_territory,
            carry_weapon=carry_weapon,
            carry_horse=carry_horse,
            water_body_id=self.water_body_id,
            weapon_from=self.weapon_available_at if carry_weapon else "",
            horse_from=self.horse_available_at if carry_horse else "",
        )

    def allows(self, selection: ReinforcementSelection) -> bool:
        """True if ``selection`` is this option with supported cargo."""
        if selection.unit_type != self.unit_type:
            return False
        if selection.from_territory != self.from_territory:
            return False
        if self.unit_type == UnitType.BOAT and self.water_body_id \
                and selection.water_body_id != self.water_body_id:
            return False
        if selection.carry_weapon and not self.can_carry_weapon:
            return False
        if selection.carry_horse and not self.can_carry_horse:
            return False
        if selection.carry_weapon and self.weapon_available_at \
                and (selection.weapon_from or selection.from_territory) != self.weapon_available_at:
            return False
        if selection.carry_horse and self.horse_available_at \
                and (selection.horse_from or selection.from_territory) != self.horse_available_at:
            return False
        return True


@dataclass(frozen=True)
class AllyBreakdown:
    """One ally's contribution as decided by the alliance vote."""

    player_id: str
    name: str
    side: str  # "attacker" or "defender"
    strength: int


@dataclass
class AttackPlan:
    """State of the local player's in-progress attack.

    Attributes:
        plan_id: Plan ID issued by the server on resolution. Empty until
            the alliance vote has finished.
        request_id: Correlation ID sent with the plan request and echoed
            back with the resolution. Empty while previewing.
        attacker_id: Local player ID.
        target_territory: Territory being attacked.
        base_attack_strength: Attacker strength from the preview.
        base_defense_strength: Defender strength from the preview.
        resolved_attack_strength: Attack strength after the alliance vote.
        resolved_defense_strength: Defense strength after the alliance vote.
        ally_breakdowns: Per-ally contributions from the alliance vote.
        reinforcement: Unit brought along, if any.
        reinforcement_options: What the preview said may be brought.
        status: Current phase of the plan.
        cancel_reason: Human-readable reason once CANCELLED.
        attacker_wins: Combat outcome once RESOLVED.
    """

    attacker_id: str
    target_territory: str
    plan_id: str = ""
    request_id: str = ""
    base_attack_strength: int = 0
    base_defense_strength: int = 0
    resolved_attack_strength: Optional[int] = None
    resolved_defense_strength: Optional[int] = None
    ally_breakdowns: list[AllyBreakdown] = field(default_factory=list)
    reinforcement: Optional[ReinforcementSelection] = None
    reinforcement_options: list[ReinforcementOption] = field(default_factory=list)
    status: AttackStatus = AttackStatus.PREVIEWING
    cancel_reason: str = ""
    attacker_wins: Optional[bool] = None

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal


@dataclass
class AllianceWait:
    """Observed alliance vote for the local plan.

    The server runs the vote; the client only counts frames so it can
    show a waiting indicator and give up once the server's ceiling has
    clearly passed.
    """

    request_id: str
    deadline_relative_frames: int
    elapsed_frames: int = 0
    resolved: bool = False
    timed_out: bool = False

    @property
    def remaining_frames(self) -> int:
        return max(0, self.deadline_relative_frames - self.elapsed_frames)


@dataclass
class AllianceVotePrompt:
    """A third-party battle asking the local player to pick a side."""

    battle_id: str
    attacker_name: str
    defender_name: str
    territory_name: str
    your_strength: int
    remaining_frames: int
