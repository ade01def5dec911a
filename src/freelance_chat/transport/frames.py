"""
Live channel frame construction and parsing.

Inbound: ``{"message": ..., "sender": ..., "sender_id": ...}``.
Outbound: ``{"message": ...}``.
"""

import json
from typing import Any, Optional, Union

from pydantic import ValidationError

from freelance_chat.models.frames import InboundFrame, OutboundFrame


def build_outbound_frame(body: str) -> str:
    """Serialize an outbound chat frame as the JSON text sent over the socket."""
    return json.dumps(OutboundFrame(message=body).model_dump())


def decode_frame(text: Union[str, bytes]) -> Optional[dict[str, Any]]:
    """Decode a raw socket payload. Returns None if it is not a JSON object."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def parse_inbound_frame(raw: Any) -> Optional[InboundFrame]:
    """Parse a pushed chat frame. Returns None if invalid or if it carries no message text."""
    if not isinstance(raw, dict) or not raw.get("message"):
        return None
    try:
        return InboundFrame.model_validate(raw)
    except ValidationError:
        return None
