"""Client loop — asyncio-based per-frame update.

Responsibilities, once per frame:
- Drain inbound server messages and route them to the handlers
- Drain queued UI intents and apply them to the engine
- Advance alliance / card deadlines
- Advance playback of the live game event

All engine state is mutated here and nowhere else. The connection's
reader and writer tasks only touch their queues.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import TYPE_CHECKING, Optional

from pydantic import ValidationError

from conquestclient.models import intents
from conquestclient.models.intents import Intent

if TYPE_CHECKING:
    from conquestclient.engine.attack_coordinator import AttackResolutionCoordinator
    from conquestclient.engine.event_queue import EventAckQueue
    from conquestclient.engine.presentation import Presenter
    from conquestclient.engine.turn_phase import TurnPhaseController
    from conquestclient.network.connection import Connection
    from conquestclient.network.router import Router

log = logging.getLogger(__name__)


class ClientLoop:
    """The cooperative frame loop.

    Args:
        connection: Transport whose inbound queue is drained each frame.
        router: Dispatches inbound messages to handlers.
        coordinator: Attack lifecycle owner.
        turn: Turn phase controller.
        event_queue: Game event playback queue.
        presenter: Plays back the live event; stepped once per frame.
        frame_rate: Frames per second.
    """

    def __init__(
        self,
        connection: Connection,
        router: Router,
        coordinator: AttackResolutionCoordinator,
        turn: TurnPhaseController,
        event_queue: EventAckQueue,
        presenter: Optional[Presenter] = None,
        frame_rate: int = 60,
    ) -> None:
        self._connection = connection
        self._router = router
        self._coordinator = coordinator
        self._turn = turn
        self._queue = event_queue
        self._presenter = presenter
        self._frame_interval = 1.0 / frame_rate
        self._intents: deque[Intent] = deque()
        self._running = False

        # --- Monitoring counters ---
        self.tick_count: int = 0
        self.messages_routed: int = 0
        self.messages_dropped: int = 0

    def post(self, intent: Intent) -> None:
        """Queue a UI intent for the next frame."""
        self._intents.append(intent)

    async def run(self) -> None:
        """Run frames until stop() is called."""
        self._running = True
        while self._running:
            await self.tick()
            await asyncio.sleep(self._frame_interval)

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Signal the loop to stop."""
        self._running = False

    async def tick(self, frames: int = 1) -> None:
        """One frame of the client loop."""
        t0 = time.monotonic()

        # 1. Server messages, in arrival order
        for raw in self._connection.drain_inbound():
            try:
                if await self._router.route(raw):
                    self.messages_routed += 1
            except ValidationError as e:
                self.messages_dropped += 1
                log.warning("Dropping malformed %s message: %d error(s)",
                            raw.get("type", "?"), e.error_count())
            except Exception:
                self.messages_dropped += 1
                log.exception("Handler error: type=%s", raw.get("type", "?"))

        # 2. Local input
        while self._intents:
            self.handle_intent(self._intents.popleft())

        # 3. Timers and playback
        self._coordinator.step(frames)
        if self._presenter is not None:
            self._presenter.step(frames)

        self.tick_count += 1
        elapsed_ms = (time.monotonic() - t0) * 1000
        if elapsed_ms > self._frame_interval * 1000:
            log.debug("Slow frame %d: %.1f ms", self.tick_count, elapsed_ms)

    def handle_intent(self, intent: Intent) -> bool:
        """Apply one intent. Returns whatever the engine operation returned."""
        c = self._coordinator
        if isinstance(intent, intents.ShowPreview):
            return c.show_preview(intent.target_territory)
        if isinstance(intent, intents.SelectReinforcement):
            return c.select_reinforcement(intent.selection)
        if isinstance(intent, intents.SubmitPlan):
            return c.submit_plan()
        if isinstance(intent, intents.ConfirmAttack):
            return c.confirm()
        if isinstance(intent, intents.CancelAttack):
            return c.cancel(intent.reason)
        if isinstance(intent, intents.ToggleCard):
            return c.toggle_card(intent.card_id)
        if isinstance(intent, intents.CommitCards):
            return c.commit_cards()
        if isinstance(intent, intents.SkipCards):
            return c.skip_cards()
        if isinstance(intent, intents.VoteAlliance):
            return c.vote_alliance(intent.side)
        if isinstance(intent, intents.EndTurn):
            return self._turn.end_turn()
        if isinstance(intent, intents.PlaybackFinished):
            return self._queue.on_playback_complete(intent.event_id)
        log.warning("Unknown intent: %r", intent)
        return False
