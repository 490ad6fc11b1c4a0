"""Serialization — JSON encoding/decoding of wire messages.

The server wraps every message in an envelope
``{"type", "id", "timestamp", "payload"}``. Inside the client messages
are flat dicts with a ``type`` key, which is what the pydantic models
validate. ``encode`` wraps, ``decode`` unwraps.
"""

from __future__ import annotations

import json
import time
import uuid
from typing import Any, Union

from conquestclient.models.messages import GameMessage


def to_wire(message: GameMessage) -> dict[str, Any]:
    """Dump a message model to a flat dict (wire names, no unset optionals)."""
    return message.model_dump(mode="json", by_alias=True, exclude_none=True)


def encode(data: dict[str, Any], envelope: bool = True) -> str:
    """Encode a flat message dict to a JSON text frame."""
    if envelope:
        payload = {k: v for k, v in data.items() if k != "type"}
        data = {
            "type": data["type"],
            "id": str(uuid.uuid4()),
            "timestamp": int(time.time() * 1000),
            "payload": payload,
        }
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def decode(raw: Union[str, bytes]) -> dict[str, Any]:
    """Decode a JSON frame to a flat message dict.

    Raises:
        ValueError: if the frame is not a JSON object with a ``type``.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise ValueError("message is not an object with a type")
    payload = data.get("payload")
    if isinstance(payload, dict):
        return {**payload, "type": data["type"]}
    if "payload" in data:
        return {"type": data["type"]}
    return data
