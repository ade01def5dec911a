"""
REST HTTP client for the freelance marketplace backend.
"""

from typing import Any, Optional

import httpx

from freelance_chat.errors import FreelanceChatError

DEFAULT_BASE_URL = "https://freelance-backend-pwh5.onrender.com"
DEFAULT_TIMEOUT_S = 30.0


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": "freelance-chat/0.1.0", "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def _auth_headers(self, authenticated: bool) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def _check(resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            raise FreelanceChatError(
                "http_error",
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                {"status_code": resp.status_code},
            )
        return resp.json()

    async def get(self, path: str, params: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        resp = await self._client.get(path, params=params, headers=self._auth_headers(authenticated))
        return self._check(resp)

    async def post(self, path: str, body: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        resp = await self._client.post(path, json=body, headers=self._auth_headers(authenticated))
        return self._check(resp)

    async def close(self) -> None:
        await self._client.aclose()


def unwrap_results(json_data: Any) -> list[Any]:
    """List endpoints answer with a bare list or a ``{"results": [...]}`` page."""
    if isinstance(json_data, dict):
        results = json_data.get("results")
        return list(results) if isinstance(results, list) else []
    if isinstance(json_data, list):
        return json_data
    return []
