"""Presentation collaborator — plays back the live game event.

A real UI implements ``Presenter`` and calls back when its animation
ends. ``FramePresenter`` is the headless stand-in: it "plays" each
event for a fixed number of frames per kind and then reports it done.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from conquestclient.loaders.client_config_loader import PlaybackFrames
from conquestclient.models.events import GameEvent
from conquestclient.util.constants import MAX_PLAYBACK_FRAMES

log = logging.getLogger(__name__)


class Presenter(Protocol):
    """Anything that can play back a game event."""

    def present(self, event: GameEvent) -> None: ...

    def step(self, frames: int = 1) -> None: ...

    def cancel(self) -> None: ...


class FramePresenter:
    """Plays events for a deterministic, per-kind number of frames.

    Args:
        on_finished: Called with the event id when playback ends.
        durations: Frames per event kind.
    """

    def __init__(self, on_finished: Callable[[str], None],
                 durations: Optional[PlaybackFrames] = None) -> None:
        self._on_finished = on_finished
        self._durations = durations or PlaybackFrames()
        self._current: Optional[GameEvent] = None
        self._remaining = 0

    @property
    def current(self) -> Optional[GameEvent]:
        return self._current

    def duration_for(self, event: GameEvent) -> int:
        frames = getattr(self._durations, event.kind.value, 0)
        return max(0, min(int(frames), MAX_PLAYBACK_FRAMES))

    def present(self, event: GameEvent) -> None:
        if self._current is not None:
            log.warning("Presenting %s while %s is still playing",
                        event.event_id, self._current.event_id)
        self._current = event
        self._remaining = self.duration_for(event)
        log.debug("Playing %s (%s) for %d frames",
                  event.event_id or "-", event.kind.value, self._remaining)
        if self._remaining == 0:
            self._finish()

    def step(self, frames: int = 1) -> None:
        if self._current is None:
            return
        self._remaining -= frames
        if self._remaining <= 0:
            self._finish()

    def cancel(self) -> None:
        """Stop the current playback without reporting it finished."""
        if self._current is not None:
            log.debug("Playback of %s abandoned", self._current.event_id or "-")
        self._current = None
        self._remaining = 0

    def _finish(self) -> None:
        event = self._current
        self._current = None
        self._remaining = 0
        self._on_finished(event.event_id)
