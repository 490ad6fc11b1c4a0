"""Client constants — timing, limits, protocol names.

Defaults for everything tunable live in ClientConfig; the values here
are protocol facts the server and client agree on.
"""

# -- Timing --------------------------------------------------------------

FRAME_RATE: int = 60
"""Frames per second of the client update loop."""

ALLIANCE_WAIT_CEILING_S: float = 60.0
"""Upper bound the server enforces on an alliance vote."""

DEFAULT_DEFENSE_DEADLINE_S: float = 30.0
"""Defense card deadline used when the server sends no time limit."""

MAX_PLAYBACK_FRAMES: int = 300
"""No single event plays back for longer than this."""

# -- Alliance sides ------------------------------------------------------

SIDE_ATTACKER: str = "attacker"
SIDE_DEFENDER: str = "defender"
SIDE_NEUTRAL: str = "neutral"

# -- Combat modes --------------------------------------------------------

COMBAT_MODE_CLASSIC: str = "classic"
COMBAT_MODE_CARDS: str = "cards"

# -- Server error codes --------------------------------------------------

ERR_INVALID_ACTION: str = "invalid_action"
ERR_NOT_YOUR_TURN: str = "not_your_turn"
ERR_INVALID_TARGET: str = "invalid_target"
ERR_INSUFFICIENT_RESOURCES: str = "insufficient_resources"
ERR_ALREADY_HAS_UNIT: str = "already_has_unit"
ERR_CANNOT_REACH: str = "cannot_reach"
ERR_ATTACK_FAILED: str = "attack_failed"

ATTACK_ERROR_CODES: frozenset[str] = frozenset({
    ERR_INVALID_ACTION,
    ERR_NOT_YOUR_TURN,
    ERR_INVALID_TARGET,
    ERR_INSUFFICIENT_RESOURCES,
    ERR_ALREADY_HAS_UNIT,
    ERR_CANNOT_REACH,
    ERR_ATTACK_FAILED,
})
"""Error codes that abort an in-flight attack plan."""


def seconds_to_frames(seconds: float, frame_rate: int = FRAME_RATE) -> int:
    """Convert a wall-clock duration to a whole number of frames."""
    return max(0, int(round(seconds * frame_rate)))
