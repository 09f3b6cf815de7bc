"""
Minimal HTTP client for the admin API, used by dashboard tooling and as the
persist callable of ReorderWidget.
"""
from typing import List, Optional
import httpx


class AdminAPIError(Exception):
    """Non-2xx response from the admin API."""

    def __init__(self, status_code: int, error: str, detail=None):
        self.status_code = status_code
        self.error = error
        self.detail = detail
        super().__init__(f"{status_code} {error}: {detail}")


class AdminClient:
    """
    Thin typed wrapper over the admin API.

    Args:
        http: An httpx.Client whose base_url points at the API server
        token: Bearer token from a previous login, if any
    """

    def __init__(self, http: httpx.Client, token: Optional[str] = None):
        self.http = http
        self.token = token
        self.last_invalidation: Optional[str] = None

    @classmethod
    def connect(cls, base_url: str, timeout: float = 30.0) -> "AdminClient":
        return cls(httpx.Client(base_url=base_url, timeout=timeout))

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(self, method: str, path: str, **kwargs):
        response = self.http.request(method, path, headers=self._headers(), **kwargs)
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {"error": response.reason_phrase, "detail": response.text}
            raise AdminAPIError(response.status_code, body.get("error", "Request failed"), body.get("detail"))
        self.last_invalidation = response.headers.get("X-Content-Invalidate") or self.last_invalidation
        return response.json()

    def login(self, username: str, password: str) -> dict:
        data = self._request("POST", "/api/auth/login", json={"username": username, "password": password})
        self.token = data["token"]
        return data["user"]

    def list_items(self, collection: str, region: Optional[str] = None) -> List[dict]:
        params = {"region": region} if region else None
        return self._request("GET", f"/api/admin/{collection}", params=params)

    def reorder(self, collection: str, order: List[int], region: Optional[str] = None) -> List[dict]:
        """Submit the full ordered id list; returns the refreshed list."""
        params = {"region": region} if region else None
        return self._request("POST", f"/api/admin/{collection}/reorder", params=params, json={"order": order})

    def persist_order(self, collection: str, region: Optional[str] = None):
        """Callable suitable for ReorderWidget.save()."""
        return lambda order: self.reorder(collection, order, region)

    def close(self) -> None:
        self.http.close()
