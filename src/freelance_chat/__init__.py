"""
freelance-chat: chat client for the freelance marketplace backend.

Merges REST message history and the live WebSocket channel into one
ordered timeline per conversation, with optimistic sends.
"""

from freelance_chat.client import AsyncFreelanceChat
from freelance_chat.errors import (
    AuthError,
    ChannelError,
    ConnectError,
    FreelanceChatError,
    HistoryLoadError,
    NotConnectedError,
    SessionClosedError,
)
from freelance_chat.history import HistoryLoader, HistoryPage
from freelance_chat.models.message import Message, MessageState
from freelance_chat.models.room import Role, Room
from freelance_chat.reconnect import ReconnectPolicy
from freelance_chat.session import ChatSession
from freelance_chat.store import MessageStore
from freelance_chat.transport.websocket import ChannelEvent, ChannelState, LiveChannel

__version__ = "0.1.0"
__all__ = [
    "AsyncFreelanceChat",
    "ChatSession",
    "MessageStore",
    "HistoryLoader",
    "HistoryPage",
    "LiveChannel",
    "ChannelEvent",
    "ChannelState",
    "ReconnectPolicy",
    "Message",
    "MessageState",
    "Role",
    "Room",
    "FreelanceChatError",
    "AuthError",
    "HistoryLoadError",
    "ConnectError",
    "ChannelError",
    "NotConnectedError",
    "SessionClosedError",
]
