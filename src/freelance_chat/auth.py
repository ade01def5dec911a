"""
Auth module: username/password login against the marketplace backend.
"""

from pydantic import ValidationError

from freelance_chat.errors import AuthError
from freelance_chat.models.auth import Credentials
from freelance_chat.transport.http import HttpClient

LOGIN_PATH = "/user/login/"


class Auth:
    def __init__(self, http: HttpClient):
        self._http = http

    async def login(self, username: str, password: str) -> Credentials:
        """Log in and attach the access token to subsequent requests."""
        if not username or not password:
            raise AuthError("Both username and password are required")
        try:
            result = await self._http.post(LOGIN_PATH, {"username": username, "password": password}, authenticated=False)
            credentials = Credentials.model_validate(result)
        except ValidationError as e:
            raise AuthError(f"Unexpected login response: {e.errors()[:1]}")
        except Exception as e:
            raise AuthError(f"Failed to log in: {e}")
        self._http.set_token(credentials.access_token)
        return credentials

    def logout(self) -> None:
        self._http.set_token(None)
