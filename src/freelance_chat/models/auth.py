"""
Credentials returned by the login endpoint.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from freelance_chat.models.room import Role


class Credentials(BaseModel):
    access_token: str = Field(alias="access")
    refresh_token: Optional[str] = Field(default=None, alias="refresh")
    user: dict[str, Any] = Field(default_factory=dict)
    role: Optional[Role] = None

    model_config = {"populate_by_name": True}

    @property
    def user_id(self) -> Optional[str]:
        uid = self.user.get("id")
        return str(uid) if uid is not None else None

    @property
    def username(self) -> Optional[str]:
        return self.user.get("username")
