from freelance_chat.models.auth import Credentials
from freelance_chat.models.frames import HistoryRecord, InboundFrame, OutboundFrame
from freelance_chat.models.message import Message, MessageState
from freelance_chat.models.room import Participant, Role, Room

__all__ = [
    "Credentials",
    "HistoryRecord",
    "InboundFrame",
    "OutboundFrame",
    "Message",
    "MessageState",
    "Participant",
    "Role",
    "Room",
]
