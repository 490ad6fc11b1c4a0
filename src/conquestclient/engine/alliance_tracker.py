"""Alliance wait tracker — observes the server-run alliance vote.

When a plan is submitted the server polls third-party neighbours; the
client only knows "waiting", "resolved" or "timed out". This tracker
counts frames for the one wait that can exist at a time.
"""

from __future__ import annotations

import logging
from typing import Optional

from conquestclient.models.attack import AllianceWait

log = logging.getLogger(__name__)


class AllianceWaitTracker:
    """Holds at most one AllianceWait."""

    def __init__(self) -> None:
        self._wait: Optional[AllianceWait] = None

    @property
    def wait(self) -> Optional[AllianceWait]:
        return self._wait

    @property
    def is_waiting(self) -> bool:
        w = self._wait
        return w is not None and not w.resolved and not w.timed_out

    def start(self, request_id: str, deadline_frames: int) -> AllianceWait:
        if self._wait is not None:
            log.warning("Replacing alliance wait for %s", self._wait.request_id)
        self._wait = AllianceWait(request_id=request_id, deadline_relative_frames=deadline_frames)
        log.debug("Alliance wait started for %s (%d frames)", request_id, deadline_frames)
        return self._wait

    def resolve(self, request_id: str) -> bool:
        """Mark the wait resolved. False if ``request_id`` is not the one waited for."""
        if not self.is_waiting or self._wait.request_id != request_id:
            return False
        self._wait.resolved = True
        self._wait = None
        return True

    def step(self, frames: int = 1) -> bool:
        """Advance the wait. Returns True on the step it times out."""
        if not self.is_waiting:
            return False
        w = self._wait
        w.elapsed_frames += frames
        if w.elapsed_frames >= w.deadline_relative_frames:
            w.timed_out = True
            log.warning("Alliance wait for %s timed out after %d frames",
                        w.request_id, w.elapsed_frames)
            return True
        return False

    def cancel(self) -> None:
        self._wait = None
