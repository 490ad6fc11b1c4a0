"""Tests for message exchange — Router, Handlers and ClientLoop integration.

Drives a fully wired client (the same services ``main`` builds) by
putting raw server messages on the connection's inbound queue, posting
UI intents and ticking the loop, then checks what lands on the
outbound queue.
"""

from __future__ import annotations

from typing import Any

import pytest

from conquestclient.loaders.client_config_loader import ClientConfig
from conquestclient.main import Services, create_services, wire_events
from conquestclient.models import intents
from conquestclient.models.attack import AttackStatus
from conquestclient.models.cards import WindowMode
from conquestclient.models.turn import Phase
from conquestclient.network.handlers import register_all_handlers
from conquestclient.util.events import AllianceRequestReceived


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _make_services(**config: Any) -> Services:
    """Create and wire the full service graph without a network task."""
    cfg = ClientConfig(player_id="p1", **config)
    services = create_services(cfg)
    wire_events(services)
    register_all_handlers(services)
    return services


def _inject(services: Services, *messages: dict[str, Any]) -> None:
    for msg in messages:
        services.connection.inbound.put_nowait(msg)


def _drain(services: Services) -> list[dict[str, Any]]:
    out = []
    queue = services.connection.outbound
    while not queue.empty():
        out.append(queue.get_nowait())
    return out


def _types(out: list[dict[str, Any]]) -> list[str]:
    return [m["type"] for m in out]


def _snapshot(phase: str = "Conquest", round_: int = 2, player: str = "p1",
              combat_mode: str = "classic", cards: list | None = None) -> dict[str, Any]:
    return {
        "type": "game_state",
        "phase": phase,
        "round": round_,
        "current_player": player,
        "combat_mode": combat_mode,
        "cards": cards or [],
    }


async def _prepare_plan(services: Services, target: str = "t7") -> dict[str, Any]:
    """Preview and submit an attack; returns the outbound plan request."""
    loop = services.client_loop
    loop.post(intents.ShowPreview(target))
    await loop.tick()
    _inject(services, {"type": "attack_preview", "target_territory": target,
                       "attack_strength": 3, "defense_strength": 2})
    loop.post(intents.SubmitPlan())
    await loop.tick()
    out = _drain(services)
    assert _types(out) == ["plan_attack", "request_attack_plan"]
    return out[1]


# ===================================================================
# Full attack over the wire
# ===================================================================


class TestAttackExchange:
    @pytest.mark.asyncio
    async def test_card_attack_round_trip(self):
        svc = _make_services()
        loop = svc.client_loop
        _inject(svc, _snapshot(combat_mode="cards", cards=[
            {"id": "a1", "name": "Flank", "cardType": "attack"},
            {"id": "d1", "name": "Wall", "cardType": "defense"},
        ]))
        await loop.tick()
        assert svc.turn.state.phase == Phase.CONQUEST
        assert svc.coordinator.combat_mode == "cards"
        assert len(svc.coordinator.hand) == 2

        request = await _prepare_plan(svc)
        assert request["target_territory"] == "t7"
        assert request["request_id"]

        _inject(svc, {"type": "attack_plan_resolved", "plan_id": "plan-42",
                      "request_id": request["request_id"], "target_territory": "t7",
                      "resolved_attack_strength": 5, "resolved_defense_strength": 4,
                      "ally_breakdowns": [{"player_id": "p3", "name": "Cy",
                                           "side": "attacker", "strength": 2}]})
        await loop.tick()
        plan = svc.coordinator.plan
        assert plan.status == AttackStatus.AWAITING_CONFIRMATION
        assert plan.ally_breakdowns[0].strength == 2

        # Turn cannot end mid-negotiation
        loop.post(intents.EndTurn())
        loop.post(intents.ConfirmAttack())
        loop.post(intents.ToggleCard("a1"))
        loop.post(intents.CommitCards())
        await loop.tick()
        out = _drain(svc)
        assert _types(out) == ["execute_attack"]
        assert out[0]["plan_id"] == "plan-42"
        assert out[0]["attack_card_ids"] == ["a1"]
        assert plan.status == AttackStatus.EXECUTING

        _inject(svc,
                {"type": "card_reveal", "event_id": "r1", "battle_id": "b1",
                 "attacker_cards": [{"id": "a1", "name": "Flank", "cardType": "attack"}]},
                {"type": "combat_result", "event_id": "c1", "plan_id": "plan-42",
                 "attacker_id": "p1", "attacker_wins": True, "attack_strength": 6,
                 "defense_strength": 4, "target_territory": "t7"})
        await loop.tick()
        assert svc.event_queue.live.event_id == "r1"
        assert _drain(svc) == []

        await loop.tick(frames=svc.config.playback_frames.card_reveal)
        assert svc.event_queue.live.event_id == "c1"
        assert plan.status == AttackStatus.EXECUTING

        await loop.tick(frames=svc.config.playback_frames.combat)
        out = _drain(svc)
        assert [(m["type"], m["event_id"]) for m in out] == [("client_ready", "r1"),
                                                              ("client_ready", "c1")]
        assert out[0]["event_type"] == "card_reveal"
        assert plan.status == AttackStatus.RESOLVED
        assert plan.attacker_wins is True

        loop.post(intents.EndTurn())
        await loop.tick()
        assert _types(_drain(svc)) == ["end_phase"]

    @pytest.mark.asyncio
    async def test_outbound_frames_use_wire_names(self):
        svc = _make_services()
        _inject(svc, _snapshot())
        await svc.client_loop.tick()
        request = await _prepare_plan(svc)
        assert "attack_card_ids" not in request
        assert request["bring_unit"] == ""

    @pytest.mark.asyncio
    async def test_rejection_cancels_plan(self):
        svc = _make_services()
        _inject(svc, _snapshot())
        await svc.client_loop.tick()
        await _prepare_plan(svc)
        _inject(svc, {"type": "error", "code": "invalid_target",
                      "message": "You already own t7"})
        await svc.client_loop.tick()
        assert svc.coordinator.plan.status == AttackStatus.CANCELLED
        assert svc.coordinator.plan.cancel_reason == "You already own t7"

    @pytest.mark.asyncio
    async def test_cancel_notifies_server(self):
        svc = _make_services()
        _inject(svc, _snapshot())
        await svc.client_loop.tick()
        request = await _prepare_plan(svc)
        svc.client_loop.post(intents.CancelAttack())
        await svc.client_loop.tick()
        out = _drain(svc)
        assert _types(out) == ["cancel_attack"]
        assert out[0]["request_id"] == request["request_id"]

    @pytest.mark.asyncio
    async def test_preview_outside_conquest_sends_nothing(self):
        svc = _make_services()
        _inject(svc, _snapshot(phase="Trade"))
        svc.client_loop.post(intents.ShowPreview("t7"))
        await svc.client_loop.tick()
        assert _drain(svc) == []
        assert svc.coordinator.plan is None


# ===================================================================
# Defense cards and alliance prompts
# ===================================================================


class TestPrompts:
    @pytest.mark.asyncio
    async def test_defense_deadline_sends_selection(self):
        svc = _make_services()
        loop = svc.client_loop
        _inject(svc, _snapshot(player="p2", cards=[
            {"id": "d1", "cardType": "defense"},
            {"id": "d2", "cardType": "defense"},
        ]))
        await loop.tick()
        _inject(svc, {"type": "defense_card_request", "battle_id": "b5",
                      "attacker_name": "Eve", "territory_id": "t1",
                      "territory_name": "Vale", "time_limit": 1})
        await loop.tick()
        assert svc.coordinator.negotiator.mode == WindowMode.DEFENSE

        loop.post(intents.ToggleCard("d2"))
        await loop.tick(frames=58)
        assert _drain(svc) == []
        await loop.tick()
        out = _drain(svc)
        assert out == [{"type": "select_defense_cards", "battle_id": "b5", "card_ids": ["d2"]}]

    @pytest.mark.asyncio
    async def test_alliance_vote(self):
        svc = _make_services()
        loop = svc.client_loop
        _inject(svc, {"type": "alliance_request", "battle_id": "b9",
                      "attacker_id": "p2", "attacker_name": "Ann",
                      "defender_id": "p3", "defender_name": "Bo",
                      "territory_name": "Marsh", "your_strength": 2, "time_limit": 60})
        await loop.tick()
        assert svc.coordinator.alliance_prompt.battle_id == "b9"
        loop.post(intents.VoteAlliance("attacker"))
        await loop.tick()
        assert _drain(svc) == [{"type": "alliance_vote", "battle_id": "b9", "side": "attacker"}]

    @pytest.mark.asyncio
    async def test_alliance_request_is_published(self):
        svc = _make_services(frame_rate=60)
        received = []
        svc.event_bus.on(AllianceRequestReceived, received.append)
        _inject(svc, {"type": "alliance_request", "battle_id": "b9",
                      "attacker_name": "Ann", "defender_name": "Bo",
                      "territory_name": "Marsh", "your_strength": 2, "time_limit": 10})
        await svc.client_loop.tick()
        assert len(received) == 1
        evt = received[0]
        assert (evt.battle_id, evt.attacker_name, evt.defender_name) == ("b9", "Ann", "Bo")
        assert evt.territory_name == "Marsh"
        assert evt.your_strength == 2
        assert evt.remaining_frames == 600

    @pytest.mark.asyncio
    async def test_card_drawn_adds_to_hand(self):
        svc = _make_services()
        _inject(svc, {"type": "card_drawn",
                      "card": {"id": "x1", "name": "Ambush", "cardType": "attack"}})
        await svc.client_loop.tick()
        assert "x1" in svc.coordinator.hand


# ===================================================================
# Turn updates, reconnect, bad input
# ===================================================================


class TestTurnAndRecovery:
    @pytest.mark.asyncio
    async def test_stale_phase_change_ignored(self):
        svc = _make_services()
        _inject(svc,
                {"type": "phase_changed", "phase": "Shipment", "round": 3,
                 "current_player": "p2"},
                {"type": "phase_changed", "phase": "Trade", "round": 2,
                 "current_player": "p1"})
        await svc.client_loop.tick()
        assert svc.turn.state.round == 3
        assert svc.turn.state.phase == Phase.SHIPMENT

    @pytest.mark.asyncio
    async def test_turn_changed_updates_holder(self):
        svc = _make_services()
        _inject(svc,
                {"type": "phase_changed", "phase": "Trade", "round": 1,
                 "current_player": "p2"},
                {"type": "turn_changed", "current_player": "p1"})
        await svc.client_loop.tick()
        assert svc.turn.is_my_turn()

    @pytest.mark.asyncio
    async def test_reconnect_discards_in_flight_state(self):
        svc = _make_services()
        loop = svc.client_loop
        _inject(svc, _snapshot())
        await loop.tick()
        await _prepare_plan(svc)
        _inject(svc, {"type": "production_results", "event_id": "p9"})
        await loop.tick()
        assert svc.event_queue.live is not None

        _inject(svc, {"type": "reconnected"}, _snapshot(phase="Conquest", round_=3))
        await loop.tick()
        assert svc.coordinator.plan.status == AttackStatus.CANCELLED
        assert svc.coordinator.plan.cancel_reason == "connection reset"
        assert svc.event_queue.live is None
        assert svc.presenter.current is None
        assert svc.turn.state.round == 3
        assert _drain(svc) == []

        # A fresh attack may start once the snapshot is in
        svc.client_loop.post(intents.ShowPreview("t8"))
        await loop.tick()
        assert _types(_drain(svc)) == ["plan_attack"]

    @pytest.mark.asyncio
    async def test_reconnect_drops_commands_queued_for_old_session(self):
        svc = _make_services()
        loop = svc.client_loop
        _inject(svc, _snapshot())
        await loop.tick()
        request = await _prepare_plan(svc)
        _inject(svc, {"type": "attack_plan_resolved", "plan_id": "pl1",
                      "request_id": request["request_id"],
                      "resolved_attack_strength": 4, "resolved_defense_strength": 3})
        loop.post(intents.ConfirmAttack())
        await loop.tick()
        assert svc.coordinator.plan.status == AttackStatus.EXECUTING
        assert not svc.connection.outbound.empty()  # execute_attack never written

        _inject(svc, {"type": "reconnected"})
        await loop.tick()

        assert svc.coordinator.plan.status == AttackStatus.CANCELLED
        assert _drain(svc) == []

    @pytest.mark.asyncio
    async def test_snapshot_without_optional_fields_keeps_local_settings(self):
        svc = _make_services(combat_mode="cards")
        loop = svc.client_loop
        _inject(svc, {"type": "card_drawn",
                      "card": {"id": "a1", "name": "Flank", "cardType": "attack"}})
        await loop.tick()
        _inject(svc, {"type": "game_state", "phase": "Conquest", "round": 2,
                      "current_player": "p1"})
        await loop.tick()
        assert svc.turn.state.round == 2
        assert svc.coordinator.combat_mode == "cards"
        assert "a1" in svc.coordinator.hand

    @pytest.mark.asyncio
    async def test_snapshot_with_fields_replaces_local_settings(self):
        svc = _make_services(combat_mode="cards")
        _inject(svc, {"type": "card_drawn",
                      "card": {"id": "a1", "cardType": "attack"}},
                _snapshot(combat_mode="classic", cards=[{"id": "d1", "cardType": "defense"}]))
        await svc.client_loop.tick()
        assert svc.coordinator.combat_mode == "classic"
        assert "a1" not in svc.coordinator.hand
        assert "d1" in svc.coordinator.hand

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_the_loop(self):
        svc = _make_services()
        loop = svc.client_loop

        async def broken(message):
            raise RuntimeError("boom")

        svc.router.register("welcome", broken)
        _inject(svc, {"type": "welcome"},
                {"type": "phase_changed", "phase": "Trade", "round": 1,
                 "current_player": "p1"})
        await loop.tick()
        assert loop.messages_dropped == 1
        assert loop.messages_routed == 1
        assert svc.turn.state.phase == Phase.TRADE
        assert loop.tick_count == 1

    @pytest.mark.asyncio
    async def test_malformed_message_dropped(self):
        svc = _make_services()
        loop = svc.client_loop
        _inject(svc,
                {"type": "phase_changed", "phase": "Trade", "round": 0,
                 "current_player": "p1"},
                {"type": "phase_changed", "phase": "Trade", "round": 1,
                 "current_player": "p1"})
        await loop.tick()
        assert loop.messages_dropped == 1
        assert loop.messages_routed == 1
        assert svc.turn.state.round == 1

    @pytest.mark.asyncio
    async def test_unknown_message_type_ignored(self):
        svc = _make_services()
        loop = svc.client_loop
        _inject(svc, {"type": "lobby_update", "players": 3})
        await loop.tick()
        assert loop.messages_routed == 0
        assert loop.messages_dropped == 0

    @pytest.mark.asyncio
    async def test_tick_counter(self):
        svc = _make_services()
        for _ in range(3):
            await svc.client_loop.tick()
        assert svc.client_loop.tick_count == 3

    @pytest.mark.asyncio
    async def test_playback_finished_intent(self):
        svc = _make_services()
        loop = svc.client_loop
        _inject(svc, {"type": "stockpile_captured", "event_id": "s1",
                      "from_territory": "t1", "to_territory": "t2"})
        await loop.tick()
        loop.post(intents.PlaybackFinished("s1"))
        await loop.tick()
        assert _drain(svc) == [{"type": "client_ready", "event_id": "s1",
                                "event_type": "stockpile_capture"}]
