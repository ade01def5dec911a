"""
Message entity: one entry of a conversation timeline.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, field_validator

LOCAL_ID_PREFIX = "local-"
LIVE_ID_PREFIX = "live-"
DEFAULT_SENDER_NAME = "User"


class MessageState(str, Enum):
    PENDING = "PENDING"      # optimistically inserted, unconfirmed
    CONFIRMED = "CONFIRMED"  # server-origin record
    FAILED = "FAILED"        # transmit error


def new_local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def new_live_id() -> str:
    """Id for a pushed message that arrived without a server id."""
    return f"{LIVE_ID_PREFIX}{uuid.uuid4().hex}"


def normalize_id(value: Any) -> Optional[str]:
    """Server ids arrive as ints or strings; compare them as strings."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Message(BaseModel):
    model_config = {"frozen": True}

    id: str
    conversation_id: str
    sender_id: Optional[str] = None
    sender_name: str = DEFAULT_SENDER_NAME
    body: str
    created_at: datetime
    state: MessageState = MessageState.CONFIRMED

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def is_local(self) -> bool:
        return self.id.startswith(LOCAL_ID_PREFIX)

    @property
    def is_pending(self) -> bool:
        return self.state is MessageState.PENDING

    def is_mine(self, viewer_id: Any) -> bool:
        viewer = normalize_id(viewer_id)
        return viewer is not None and self.sender_id == viewer
