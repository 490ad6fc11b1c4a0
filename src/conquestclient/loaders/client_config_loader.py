"""Client configuration — loads tunable settings from config/client.yaml.

Provides a single ``ClientConfig`` dataclass that is loaded once at
startup and then passed wherever settings are needed.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict

import yaml

from conquestclient.util.constants import (
    ALLIANCE_WAIT_CEILING_S,
    COMBAT_MODE_CLASSIC,
    DEFAULT_DEFENSE_DEADLINE_S,
    FRAME_RATE,
    seconds_to_frames,
)

log = logging.getLogger(__name__)

DEFAULT_CLIENT_CONFIG_PATH = "config/client.yaml"


@dataclass
class PlaybackFrames:
    """Playback length per event kind, in frames."""
    combat: int = 120
    production: int = 90
    stockpile_capture: int = 60
    card_reveal: int = 180
    phase_skip: int = 150


@dataclass
class ClientConfig:
    """All tunable client settings.

    Loaded from ``config/client.yaml``.  Every field has a sensible default
    so the client can start even without the file.
    """

    # -- Connection --------------------------------------------------
    server_url: str = "ws://localhost:8080/ws"
    player_id: str = ""
    player_name: str = ""
    player_token: str = ""

    # -- Loop --------------------------------------------------------
    frame_rate: int = FRAME_RATE

    # -- Attack flow -------------------------------------------------
    combat_mode: str = COMBAT_MODE_CLASSIC
    alliance_wait_s: float = ALLIANCE_WAIT_CEILING_S
    alliance_grace_s: float = 5.0
    alliance_prompt_s: float = ALLIANCE_WAIT_CEILING_S
    defense_deadline_s: float = DEFAULT_DEFENSE_DEADLINE_S
    notify_server_on_cancel: bool = True

    # -- Playback ----------------------------------------------------
    playback_frames: PlaybackFrames = field(default_factory=PlaybackFrames)
    ack_memory: int = 1024

    # -- Network -----------------------------------------------------
    inbound_queue_size: int = 256
    outbound_queue_size: int = 256
    ws_ping_interval: int = 30
    ws_ping_timeout: int = 10
    ws_max_message_size: int = 1_048_576
    wire_envelope: bool = True
    reconnect_delay_s: float = 2.0

    def frames(self, seconds: float) -> int:
        """Convert seconds to frames at the configured frame rate."""
        return seconds_to_frames(seconds, self.frame_rate)


def load_client_config(path: str = DEFAULT_CLIENT_CONFIG_PATH) -> ClientConfig:
    """Load client configuration from a YAML file.

    Missing keys fall back to dataclass defaults.  If the file does not
    exist, a warning is logged and pure defaults are returned.
    """
    p = Path(path)
    if not p.exists():
        log.warning("Client config not found at %s — using defaults", p)
        return ClientConfig()

    with p.open() as f:
        raw = yaml.safe_load(f) or {}

    log.info("Loaded client config from %s (%d keys)", p, len(raw))

    # Handle nested playback_frames
    pb_raw = raw.pop("playback_frames", None)
    playback = PlaybackFrames(**{
        k: v for k, v in pb_raw.items()
        if k in PlaybackFrames.__dataclass_fields__
    }) if isinstance(pb_raw, dict) else PlaybackFrames()

    unknown = sorted(k for k in raw if k not in ClientConfig.__dataclass_fields__)
    if unknown:
        log.warning("Ignoring unknown client config keys: %s", ", ".join(unknown))

    cfg = ClientConfig(playback_frames=playback, **{
        k: v for k, v in raw.items()
        if k in ClientConfig.__dataclass_fields__
    })
    return cfg


def save_client_config(cfg: ClientConfig, path: str = DEFAULT_CLIENT_CONFIG_PATH) -> None:
    """Write the configuration back to YAML (e.g. after the server issued a token)."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    data: Dict[str, object] = asdict(cfg)
    with p.open("w") as f:
        yaml.safe_dump(data, f, sort_keys=False)
    log.info("Saved client config to %s", p)
