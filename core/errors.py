"""Error taxonomy shared by registries, the sync client and the server."""

from __future__ import annotations

from typing import Any


class DesktopError(Exception):
    """Base class for application-specific errors."""

    code = "INTERNAL_ERROR"
    status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotFoundError(DesktopError):
    """Unknown window, application or user record."""

    code = "NOT_FOUND"
    status = 404


class AppNotFoundError(NotFoundError):
    """Launch or lookup of an application id that is not registered."""

    def __init__(self, app_id: str) -> None:
        super().__init__(f"App {app_id} not found in registry")
        self.app_id = app_id


class ConflictError(DesktopError):
    """Duplicate registration or conflicting write."""

    code = "CONFLICT"
    status = 409


class VersionConflictError(ConflictError):
    """Optimistic-lock mismatch between expected and stored version."""

    code = "VERSION_CONFLICT"

    def __init__(self, expected: int | None, actual: int | None) -> None:
        super().__init__(f"Version conflict: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["expected"] = self.expected
        payload["actual"] = self.actual
        return payload


class ValidationError(DesktopError):
    """Malformed geometry, state or descriptor payload."""

    code = "VALIDATION_ERROR"
    status = 400


class AuthenticationError(DesktopError):
    """Missing or rejected bearer credential."""

    code = "UNAUTHORIZED"
    status = 401


class NetworkError(DesktopError):
    """Sync endpoint unreachable or timed out."""

    code = "NETWORK_ERROR"
    status = 503
