"""Utility client for interacting with the local back-office API."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import httpx


def error_detail(err: Exception) -> str:
    """Pull the FastAPI ``detail`` out of an HTTP error, if there is one."""
    if isinstance(err, httpx.HTTPStatusError):
        try:
            detail = err.response.json().get("detail")
        except ValueError:
            detail = None
        if isinstance(detail, dict):
            return str(detail.get("message") or detail)
        if detail:
            return str(detail)
        return f"HTTP {err.response.status_code}"
    return str(err)


class BackendClient:
    """Synchronous HTTP client thin wrapper."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        self.base_url = base_url.rstrip("/")

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        """Perform HTTP request to backend and parse JSON response."""
        url = f"{self.base_url}{path}"
        with httpx.Client(timeout=httpx.Timeout(10.0, read=30.0)) as client:
            response = client.request(method, url, params=params, json=json)
            response.raise_for_status()
            if not response.content:
                return {}
            return response.json()

    def download(self, path: str) -> Tuple[bytes, str]:
        """Fetch a binary attachment; returns its bytes and suggested filename."""
        url = f"{self.base_url}{path}"
        with httpx.Client(timeout=httpx.Timeout(10.0, read=60.0)) as client:
            response = client.get(url)
            response.raise_for_status()
        disposition = response.headers.get("content-disposition", "")
        filename = "document.pdf"
        if "filename=" in disposition:
            filename = disposition.split("filename=", 1)[1].strip().strip('"')
        return response.content, filename

    def get(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> Any:
        """Shortcut for GET requests."""
        return self.request("GET", path, params=params)

    def post(
        self, path: str, *, json: Optional[Any] = None
    ) -> Any:
        """Shortcut for POST requests."""
        return self.request("POST", path, json=json)

    def put(
        self, path: str, *, json: Optional[Any] = None
    ) -> Any:
        """Shortcut for PUT requests."""
        return self.request("PUT", path, json=json)

    def delete(
        self, path: str, *, json: Optional[Any] = None
    ) -> Any:
        """Shortcut for DELETE requests."""
        return self.request("DELETE", path, json=json)
