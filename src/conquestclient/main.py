"""Game client entry point.

Initializes all components and starts the asyncio event loop:
1. Load configuration (config/client.yaml)
2. Create engine services (turn, cards, alliance, attack, event queue, presenter)
3. Create event bus and wire up services
4. Start network connection (WebSocket)
5. Start client loop (per-frame tick)

Usage:
    python -m conquestclient.main [--config <path>] [--player <id>]
    # or via entry point:
    conquest-client
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass
from typing import Optional

from conquestclient.engine.alliance_tracker import AllianceWaitTracker
from conquestclient.engine.attack_coordinator import AttackResolutionCoordinator
from conquestclient.engine.card_negotiator import CardCombatNegotiator
from conquestclient.engine.client_loop import ClientLoop
from conquestclient.engine.event_queue import EventAckQueue
from conquestclient.engine.presentation import FramePresenter
from conquestclient.engine.turn_phase import TurnPhaseController
from conquestclient.loaders.client_config_loader import (
    DEFAULT_CLIENT_CONFIG_PATH,
    ClientConfig,
    load_client_config,
    save_client_config,
)
from conquestclient.models.cards import CardHand
from conquestclient.network.connection import Connection
from conquestclient.network.handlers import register_all_handlers
from conquestclient.network.router import Router
from conquestclient.util.events import (
    AttackPlanChanged,
    EventBecameLive,
    EventBus,
    EventPlayed,
    YourTurnStarted,
)

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Container for all services (makes passing around easier)
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Holds references to all client services."""

    config: Optional[ClientConfig] = None
    event_bus: Optional[EventBus] = None
    connection: Optional[Connection] = None
    router: Optional[Router] = None
    turn: Optional[TurnPhaseController] = None
    coordinator: Optional[AttackResolutionCoordinator] = None
    event_queue: Optional[EventAckQueue] = None
    presenter: Optional[FramePresenter] = None
    client_loop: Optional[ClientLoop] = None


# ===================================================================
# 1. Load configuration
# ===================================================================


def load_configuration(path: str = DEFAULT_CLIENT_CONFIG_PATH,
                       player_id: str = "") -> ClientConfig:
    """Load the client config; a ``player_id`` override is persisted."""
    log.info("Loading configuration …")
    cfg = load_client_config(path)
    if player_id and player_id != cfg.player_id:
        cfg.player_id = player_id
        save_client_config(cfg, path)
    log.info("  player:       %s", cfg.player_id or "(unset)")
    log.info("  server:       %s", cfg.server_url)
    log.info("  combat mode:  %s", cfg.combat_mode)
    return cfg


# ===================================================================
# 2. Create engine services
# ===================================================================


def create_services(cfg: ClientConfig) -> Services:
    """Instantiate all engine/network services with dependency injection.

    Wiring order matters: services that are injected into others are
    created first.
    """
    log.info("Creating services …")

    event_bus = EventBus()
    connection = Connection(
        cfg.server_url,
        inbound_size=cfg.inbound_queue_size,
        outbound_size=cfg.outbound_queue_size,
        ping_interval=cfg.ws_ping_interval,
        ping_timeout=cfg.ws_ping_timeout,
        max_size=cfg.ws_max_message_size,
        envelope=cfg.wire_envelope,
        reconnect_delay=cfg.reconnect_delay_s,
    )
    send = connection.send

    turn = TurnPhaseController(cfg.player_id, send, event_bus)
    negotiator = CardCombatNegotiator(event_bus, cfg.frames(cfg.defense_deadline_s))
    coordinator = AttackResolutionCoordinator(
        cfg.player_id, send,
        hand=CardHand(),
        negotiator=negotiator,
        alliance=AllianceWaitTracker(),
        config=cfg,
        event_bus=event_bus,
        turn=turn,
    )
    event_queue = EventAckQueue(send, event_bus, ack_memory=cfg.ack_memory)
    presenter = FramePresenter(event_queue.on_playback_complete, cfg.playback_frames)
    router = Router()
    client_loop = ClientLoop(connection, router, coordinator, turn, event_queue,
                             presenter=presenter, frame_rate=cfg.frame_rate)

    log.info("  all services created")

    return Services(
        config=cfg,
        event_bus=event_bus,
        connection=connection,
        router=router,
        turn=turn,
        coordinator=coordinator,
        event_queue=event_queue,
        presenter=presenter,
        client_loop=client_loop,
    )


# ===================================================================
# 3. Wire up event handlers
# ===================================================================


def wire_events(services: Services) -> None:
    """Register event handlers to connect services via the EventBus."""
    log.info("Wiring event handlers …")
    bus = services.event_bus
    coordinator = services.coordinator

    # The turn cannot end while an attack is being negotiated
    services.turn.bind_attack_flow(coordinator.has_active_plan)

    # Live event → presenter; played combat → attack plan
    bus.on(EventBecameLive, lambda evt: services.presenter.present(evt.event))
    bus.on(EventPlayed, lambda evt: coordinator.on_event_played(evt.event))

    bus.on(YourTurnStarted, lambda evt: log.info(
        "*** Your turn: round %d, %s ***", evt.round, evt.phase))
    bus.on(AttackPlanChanged, _log_plan_change)

    log.info("  event handlers registered")


def _log_plan_change(evt: AttackPlanChanged) -> None:
    if evt.reason:
        log.info("Attack on %s is now %s: %s", evt.target_territory, evt.status, evt.reason)
    else:
        log.info("Attack on %s is now %s", evt.target_territory, evt.status)


# ===================================================================
# 4. Start network connection
# ===================================================================


async def start_network(services: Services) -> asyncio.Task:
    """Register message handlers and start the connection task."""
    log.info("Starting network …")
    register_all_handlers(services)
    task = asyncio.create_task(services.connection.run())
    log.info("  connecting to %s", services.config.server_url)
    return task


# ===================================================================
# 5. Start client loop
# ===================================================================


async def start_client_loop(services: Services, network_task: asyncio.Task) -> None:
    """Run the frame loop until a shutdown signal is received."""
    log.info("Starting client loop …")
    loop = asyncio.get_running_loop()

    def _request_shutdown() -> None:
        log.info("Shutdown signal received — stopping …")
        services.client_loop.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_shutdown)

    log.info("  client loop running (%d fps)", services.config.frame_rate)
    await services.client_loop.run()

    # --- Cleanup after loop exits ---
    log.info("Shutting down …")
    await services.connection.close()
    network_task.cancel()
    try:
        await network_task
    except asyncio.CancelledError:
        pass
    log.info("  goodbye")


# ===================================================================
# Entry points
# ===================================================================


async def _start(config_path: str = DEFAULT_CLIENT_CONFIG_PATH, player_id: str = "") -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    log.info("=== Conquest client starting ===")

    cfg = load_configuration(config_path, player_id)
    if not cfg.player_id:
        log.error("No player id configured — set player_id in %s or pass --player", config_path)
        return

    services = create_services(cfg)
    wire_events(services)
    network_task = await start_network(services)
    await start_client_loop(services, network_task)


def _arg(name: str, default: str) -> str:
    if name not in sys.argv:
        return default
    idx = sys.argv.index(name)
    if idx + 1 >= len(sys.argv):
        print(f"Error: {name} requires an argument", file=sys.stderr)
        sys.exit(1)
    return sys.argv[idx + 1]


def main() -> None:
    """Entry point for the game client.

    Supports command-line arguments:
        --config <path>  Client config file (default: config/client.yaml)
        --player <id>    Player id to play as (saved to the config)
    """
    config_path = _arg("--config", DEFAULT_CLIENT_CONFIG_PATH)
    player_id = _arg("--player", "")
    asyncio.run(_start(config_path=config_path, player_id=player_id))


if __name__ == "__main__":
    main()
