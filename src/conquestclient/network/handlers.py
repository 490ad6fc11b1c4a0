"""Message handlers — central registry of all inbound message handlers.

Each handler is an async function that receives a parsed GameMessage
and forwards it to the engine component that owns the state it touches.

This module is the single place where inbound dispatch lives. To add
a new message handler:

1. Write the handler function below (grouped by category).
2. Register it in :func:`register_all_handlers` at the bottom.
"""

from __future__ import annotations

import logging
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from conquestclient.main import Services

from conquestclient.models.events import GameEvent
from conquestclient.models.messages import (
    AllianceRequest,
    AllianceResult,
    AttackPlanResolved,
    AttackPreview,
    CardDrawn,
    DefenseCardRequest,
    ErrorMessage,
    GameMessage,
    GameStateSnapshot,
    PhaseChanged,
    TurnChanged,
    WelcomeMessage,
)

log = logging.getLogger(__name__)

# Module-level reference set by register_all_handlers()
_services: Optional[Services] = None


def _svc() -> Services:
    """Get the Services container. Raises if not initialized."""
    assert _services is not None, "handlers: services not initialized"
    return _services


# ===================================================================
# System
# ===================================================================

async def handle_welcome(message: WelcomeMessage) -> None:
    log.info("Server says welcome (version %s)", message.server_version or "?")


async def handle_error(message: ErrorMessage) -> None:
    """Server rejected something; fail the attack plan if it was waiting."""
    log.warning("Server error: %s - %s", message.code, message.message)
    _svc().coordinator.on_server_error(message)


async def handle_reconnected(message: GameMessage) -> None:
    """Session was re-established: drop everything not yet final.

    Commands queued before this point belong to the old session and are
    discarded too. The server follows up with a ``game_state`` snapshot.
    """
    svc = _svc()
    log.info("[STATE] Reconnected — discarding in-flight state")
    svc.connection.discard_outbound()
    svc.coordinator.reset()
    svc.event_queue.clear()
    if svc.presenter is not None:
        svc.presenter.cancel()


# ===================================================================
# Turn
# ===================================================================

async def handle_phase_changed(message: PhaseChanged) -> None:
    if message.skipped:
        log.info("Phase %s was skipped", message.phase.value)
    _svc().turn.apply_turn_update(message.round, message.phase, message.current_player)


async def handle_turn_changed(message: TurnChanged) -> None:
    _svc().turn.apply_turn_holder(message.current_player)


async def handle_game_state(message: GameStateSnapshot) -> None:
    """Full snapshot: resync the turn; hand and combat mode only if sent."""
    svc = _svc()
    coordinator = svc.coordinator
    svc.turn.resync(message.round, message.phase, message.current_player)
    if message.cards is not None:
        coordinator.hand.replace(message.cards)
    if message.combat_mode is not None:
        coordinator.combat_mode = message.combat_mode
    log.info("Snapshot applied: %d card(s), %s combat",
             len(coordinator.hand), coordinator.combat_mode)


# ===================================================================
# Attack
# ===================================================================

async def handle_attack_preview(message: AttackPreview) -> None:
    _svc().coordinator.on_attack_preview(message)


async def handle_attack_plan_resolved(message: AttackPlanResolved) -> None:
    _svc().coordinator.on_plan_resolved(message)


async def handle_alliance_request(message: AllianceRequest) -> None:
    log.info("Alliance request: %s vs %s over %s", message.attacker_name,
             message.defender_name, message.territory_name)
    _svc().coordinator.on_alliance_request(message)


async def handle_alliance_result(message: AllianceResult) -> None:
    log.info("Alliance vote for battle %s %s", message.battle_id,
             "accepted" if message.accepted else "not accepted")


async def handle_defense_card_request(message: DefenseCardRequest) -> None:
    _svc().coordinator.on_defense_card_request(message)


async def handle_card_drawn(message: CardDrawn) -> None:
    _svc().coordinator.hand.add(message.card)
    log.info("Drew %s card %s", message.card.card_type.value, message.card.name or message.card.id)


# ===================================================================
# Game events (played back in order, acknowledged with client_ready)
# ===================================================================

async def handle_game_event(message: GameMessage) -> None:
    event = GameEvent.from_message(message)
    if event is None:
        log.debug("Not a game event: %s", message.type)
        return
    _svc().event_queue.enqueue(event)


# ===================================================================
# Registration
# ===================================================================

def register_all_handlers(services: Services) -> None:
    """Register all message handlers on the router.

    Called once during startup from ``main.py``.

    Args:
        services: Fully initialized Services container.
    """
    global _services
    _services = services

    router = services.router

    # -- System --------------------------------------------------------
    router.register("welcome", handle_welcome)
    router.register("error", handle_error)
    router.register("reconnected", handle_reconnected)

    # -- Turn ----------------------------------------------------------
    router.register("phase_changed", handle_phase_changed)
    router.register("turn_changed", handle_turn_changed)
    router.register("game_state", handle_game_state)

    # -- Attack --------------------------------------------------------
    router.register("attack_preview", handle_attack_preview)
    router.register("attack_plan_resolved", handle_attack_plan_resolved)
    router.register("alliance_request", handle_alliance_request)
    router.register("alliance_result", handle_alliance_result)
    router.register("defense_card_request", handle_defense_card_request)
    router.register("card_drawn", handle_card_drawn)

    # -- Game events (all go through the ack queue) --------------------
    for msg_type in ("combat_result", "card_reveal", "production_results",
                     "stockpile_captured", "phase_skipped"):
        router.register(msg_type, handle_game_event)

    log.info("Registered %d message handlers", len(router.registered_types))
