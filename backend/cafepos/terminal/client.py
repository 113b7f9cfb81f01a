# Overview: httpx wrapper used by the cashier terminal to talk to the backend API.

from typing import Optional, Dict, Tuple

import httpx


CONNECTION_ERROR = "Could not reach the server. Check your connection and try again."


class ApiError(Exception):
    """Non-2xx response from the backend; message is the server's "error" field."""
    def __init__(self, message: str, status_code: int, payload: Optional[Dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


class ConnectionFailedError(Exception):
    """The request never got a response (DNS, refused, timeout, dropped)."""
    def __init__(self, message: str = CONNECTION_ERROR):
        super().__init__(message)


class APIClient:
    """
    HTTP client wrapper with bearer auth.

    Every call returns the decoded JSON body or raises ApiError /
    ConnectionFailedError. Transport details never leak to the caller.
    """

    def __init__(self, base_url: str, timeout: float = 15.0, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)
        self.token: Optional[str] = None

    def _headers(self) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(self, method: str, path: str, json: Optional[Dict] = None, params: Optional[Dict] = None) -> Tuple[int, Dict]:
        """Send one request; returns (status_code, body) for 2xx responses."""
        try:
            response = self.client.request(method, path, headers=self._headers(), json=json, params=params)
        except httpx.TransportError as e:
            raise ConnectionFailedError() from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_error:
            message = payload.get("error") or payload.get("message") or f"Request failed ({response.status_code})"
            raise ApiError(message, response.status_code, payload)
        return response.status_code, payload

    def get(self, path: str, params: Optional[Dict] = None) -> Dict:
        return self.request("GET", path, params=params)[1]

    def post(self, path: str, json: Optional[Dict] = None) -> Dict:
        return self.request("POST", path, json=json or {})[1]

    def close(self) -> None:
        self.client.close()
