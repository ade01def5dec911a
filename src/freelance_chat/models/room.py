"""
Conversation (room) models: a two-party chat between a client and a freelancer.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

NO_MESSAGES_PLACEHOLDER = "No messages yet..."


class Role(str, Enum):
    CLIENT = "CLIENT"
    FREELANCER = "FREELANCER"
    ADMIN = "ADMIN"


class ParticipantUser(BaseModel):
    id: Optional[Any] = None
    username: Optional[str] = None


class Participant(BaseModel):
    """client_detail / freelancer_detail as returned by the rooms endpoint."""
    id: Optional[Any] = None
    user: Optional[ParticipantUser] = None

    @property
    def username(self) -> Optional[str]:
        return self.user.username if self.user else None


class Room(BaseModel):
    id: Any
    client_detail: Optional[Participant] = None
    freelancer_detail: Optional[Participant] = None
    last_message: Optional[str] = Field(default=None)

    model_config = {"extra": "ignore"}

    def display_name(self, viewer_role: Any) -> str:
        """Clients see the freelancer's name; everyone else sees the client's."""
        role = viewer_role.value if isinstance(viewer_role, Role) else str(viewer_role or "")
        if role == Role.CLIENT.value:
            name = self.freelancer_detail.username if self.freelancer_detail else None
            return name or "Freelancer"
        name = self.client_detail.username if self.client_detail else None
        return name or "Client"

    @property
    def preview(self) -> str:
        return self.last_message or NO_MESSAGES_PLACEHOLDER
