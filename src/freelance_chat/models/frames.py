"""
Wire records: history rows from the REST endpoint and live channel frames.

History rows and pushed frames describe the sender differently: a row may
carry ``sender`` as a raw id or as a nested detail object (plus an optional
``sender_detail``), a pushed frame carries ``sender_id`` and the sender's
username in ``sender``. Both resolve to the same ``sender_id`` string.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field

from freelance_chat.models.message import (
    DEFAULT_SENDER_NAME,
    Message,
    MessageState,
    new_live_id,
    normalize_id,
)


def _detail_id(detail: Any) -> Optional[str]:
    if not isinstance(detail, dict):
        return None
    found = normalize_id(detail.get("id"))
    if found is None and isinstance(detail.get("user"), dict):
        found = normalize_id(detail["user"].get("id"))
    return found


def _detail_name(detail: Any) -> Optional[str]:
    if not isinstance(detail, dict):
        return None
    user = detail.get("user")
    if isinstance(user, dict) and user.get("username"):
        return str(user["username"])
    if detail.get("username"):
        return str(detail["username"])
    return None


def resolve_sender(sender: Any, sender_detail: Any = None, sender_id: Any = None) -> tuple[Optional[str], Optional[str]]:
    """Return ``(sender_id, sender_name)`` from any of the sender shapes."""
    if isinstance(sender, dict):
        resolved = _detail_id(sender)
        name = _detail_name(sender)
    else:
        resolved = normalize_id(sender)
        name = None
    if resolved is None:
        resolved = _detail_id(sender_detail)
    if resolved is None:
        resolved = normalize_id(sender_id)
    return resolved, name or _detail_name(sender_detail)


class HistoryRecord(BaseModel):
    """One message row from ``GET /chat/messages/?room=<id>``."""

    id: Any
    room: Optional[Any] = None
    sender: Optional[Any] = None
    sender_detail: Optional[dict[str, Any]] = None
    sender_id: Optional[Any] = None
    body: str = Field(validation_alias=AliasChoices("text_content", "body", "message"))
    timestamp: datetime = Field(validation_alias=AliasChoices("timestamp", "created_at", "t"))

    model_config = {"extra": "ignore"}

    def to_message(self, conversation_id: str) -> Message:
        sender_id, sender_name = resolve_sender(self.sender, self.sender_detail, self.sender_id)
        return Message(
            id=normalize_id(self.id) or new_live_id(),
            conversation_id=conversation_id,
            sender_id=sender_id,
            sender_name=sender_name or DEFAULT_SENDER_NAME,
            body=self.body,
            created_at=self.timestamp,
            state=MessageState.CONFIRMED,
        )


class InboundFrame(BaseModel):
    """Server-pushed frame: ``{message, sender, sender_id}`` plus optional extras."""

    message: str
    sender: Optional[Any] = None
    sender_id: Optional[Any] = None
    id: Optional[Any] = None
    client_id: Optional[str] = None
    conversation_id: Optional[Any] = Field(default=None, validation_alias=AliasChoices("room", "room_id", "conversation_id"))
    timestamp: Optional[datetime] = None

    model_config = {"extra": "ignore"}

    @property
    def resolved_sender_id(self) -> Optional[str]:
        if isinstance(self.sender, dict):
            return resolve_sender(self.sender, None, self.sender_id)[0]
        return normalize_id(self.sender_id)

    @property
    def sender_name(self) -> str:
        if isinstance(self.sender, dict):
            return _detail_name(self.sender) or DEFAULT_SENDER_NAME
        if self.sender is not None and str(self.sender).strip():
            return str(self.sender)
        return DEFAULT_SENDER_NAME

    def to_message(self, conversation_id: str, received_at: datetime) -> Message:
        return Message(
            id=normalize_id(self.id) or new_live_id(),
            conversation_id=conversation_id,
            sender_id=self.resolved_sender_id,
            sender_name=self.sender_name,
            body=self.message,
            created_at=self.timestamp or received_at,
            state=MessageState.CONFIRMED,
        )


class OutboundFrame(BaseModel):
    message: str
