"""
Freelance chat error types.
"""

from typing import Any, Optional


class FreelanceChatError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class AuthError(FreelanceChatError):
    def __init__(self, message: str, code: str = "auth_error"):
        super().__init__(code, message)


class HistoryLoadError(FreelanceChatError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("history_load_error", message, details)


class ConnectError(FreelanceChatError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("connect_error", message, details)


class ChannelError(FreelanceChatError):
    def __init__(self, message: str, code: str = "channel_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class NotConnectedError(ChannelError):
    def __init__(self, message: str = "Live channel is not open"):
        super().__init__(message, code="not_connected")


class SessionClosedError(FreelanceChatError):
    def __init__(self, message: str = "Chat session is closed"):
        super().__init__("session_closed", message)
