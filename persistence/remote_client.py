"""HTTP client for the desktop state endpoints."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import requests

from core.errors import (
    AuthenticationError,
    ConflictError,
    DesktopError,
    NetworkError,
    NotFoundError,
    ValidationError,
    VersionConflictError,
)

logger = logging.getLogger("desktop.remote")

TokenProvider = Callable[[], str | None]


class DesktopApiClient:
    """Thin wrapper over ``/api/v1/desktop`` that raises typed errors.

    ``session`` only needs a requests-compatible ``request()`` method, which
    lets tests route calls into an in-process server.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        *,
        timeout: float = 5.0,
        session: Any | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self.session = session or requests.Session()

    def has_credential(self) -> bool:
        return bool(self.token_provider())

    # -- desktop settings ---------------------------------------------

    def get_state(self) -> dict[str, Any]:
        return self._request("GET", "/desktop/state")

    def put_state(self, desktop: dict[str, Any], version: int | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"desktop": desktop}
        if version is not None:
            payload["version"] = version
        return self._request("PUT", "/desktop/state", payload)

    # -- windows ---------------------------------------------------------

    def get_windows(self) -> dict[str, Any]:
        return self._request("GET", "/desktop/windows")

    def put_windows(self, windows: list[dict[str, Any]], version: int | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"windows": windows}
        if version is not None:
            payload["version"] = version
        return self._request("PUT", "/desktop/windows", payload)

    def save_window(self, window: dict[str, Any], version: int | None = None) -> dict[str, Any]:
        payload = dict(window)
        if version is not None:
            payload["version"] = version
        return self._request("POST", "/desktop/windows", payload)

    def bring_to_front(self, window_id: str) -> dict[str, Any]:
        return self._request("POST", f"/desktop/windows/{window_id}/front")

    def delete_window(self, window_id: str) -> dict[str, Any]:
        return self._request("DELETE", f"/desktop/windows/{window_id}")

    def close_all(self) -> dict[str, Any]:
        return self._request("DELETE", "/desktop/windows")

    def reset(self) -> dict[str, Any]:
        return self._request("POST", "/desktop/reset")

    # -- transport -------------------------------------------------------

    def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        token = self.token_provider()
        if not token:
            raise AuthenticationError("No access token available")
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        try:
            response = self.session.request(
                method, url, json=payload, headers=headers, timeout=self.timeout
            )
        except requests.Timeout as exc:
            raise NetworkError(f"{method} {path} timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc

        body = _json_body(response)
        if response.status_code >= 400:
            raise _error_from(response.status_code, body)
        logger.debug("%s %s -> %s", method, path, response.status_code)
        data = body.get("data", body)
        return data if isinstance(data, dict) else {"items": data}


def _json_body(response: Any) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {"data": body}


def _error_from(status: int, body: dict[str, Any]) -> DesktopError:
    error = body.get("error") or {}
    code = error.get("code", "")
    message = error.get("message", f"HTTP {status}")
    if status == 401:
        return AuthenticationError(message)
    if status == 404:
        return NotFoundError(message)
    if status == 409:
        if code == "VERSION_CONFLICT":
            return VersionConflictError(error.get("expected"), error.get("actual"))
        return ConflictError(message)
    if status == 400:
        return ValidationError(message)
    return NetworkError(f"Server error {status}: {message}")
