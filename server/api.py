"""Flask HTTP surface for the server record store."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from flask import Blueprint, Flask, g, jsonify, request

from core.errors import AuthenticationError, DesktopError, ValidationError
from server.record_store import ServerRecord, ServerRecordStore
from world_model.types.base import CamelModel
from world_model.types.desktop import DesktopSettingsPatch
from world_model.types.window import Window
from world_model.window_registry import coerce_model

logger = logging.getLogger("desktop.server.api")

API_PREFIX = "/api/v1/desktop"


class DesktopStatePut(CamelModel):
    version: int | None = None
    desktop: DesktopSettingsPatch


class WindowsPut(CamelModel):
    version: int | None = None
    windows: list[Window]


class TokenAuthenticator:
    """Resolves bearer tokens issued by the auth subsystem to user ids."""

    def __init__(self, tokens: Mapping[str, str]) -> None:
        self.tokens = dict(tokens)

    def user_for(self, header: str | None) -> str:
        if not header or not header.lower().startswith("bearer "):
            raise AuthenticationError("Missing bearer token")
        user_id = self.tokens.get(header[7:].strip())
        if user_id is None:
            raise AuthenticationError("Invalid token")
        return user_id


def _envelope(data: Any, status: int = 200) -> tuple[Any, int]:
    return jsonify({"data": data, "meta": {"timestamp": datetime.now(UTC).isoformat()}}), status


def _body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _state_payload(record: ServerRecord) -> dict[str, Any]:
    return {
        "version": record.version,
        "desktop": record.desktop.to_json_dict(),
        "lastSaved": record.last_saved.isoformat() if record.last_saved else None,
        "pristine": record.pristine,
    }


def create_app(store: ServerRecordStore, authenticator: TokenAuthenticator) -> Flask:
    """Build the API application around an existing store."""
    app = Flask(__name__)
    desktop_bp = Blueprint("desktop", __name__, url_prefix=API_PREFIX)

    @desktop_bp.before_request
    def _authenticate() -> None:
        g.user_id = authenticator.user_for(request.headers.get("Authorization"))

    @desktop_bp.get("/state")
    def get_state() -> Any:
        return _envelope(_state_payload(store.get_or_create(g.user_id)))

    @desktop_bp.put("/state")
    def put_state() -> Any:
        body = coerce_model(DesktopStatePut, _body(), required=True)
        store.get_or_create(g.user_id)
        record = store.update(g.user_id, body.desktop, expected_version=body.version)
        return _envelope(_state_payload(record))

    @desktop_bp.get("/windows")
    def get_windows() -> Any:
        version, windows = store.list_windows(g.user_id)
        return _envelope({"version": version, "windows": [w.to_json_dict() for w in windows]})

    @desktop_bp.post("/windows")
    def save_window() -> Any:
        body = _body()
        expected = body.pop("version", None)
        if expected is not None and not isinstance(expected, int):
            raise ValidationError("version must be an integer")
        window = coerce_model(Window, body, required=True)
        version, saved = store.save_window(g.user_id, window, expected_version=expected)
        return _envelope({"version": version, "window": saved.to_json_dict()})

    @desktop_bp.put("/windows")
    def replace_windows() -> Any:
        body = coerce_model(WindowsPut, _body(), required=True)
        record = store.replace_windows(g.user_id, body.windows, expected_version=body.version)
        return _envelope(
            {"version": record.version, "windows": [w.to_json_dict() for w in record.windows]}
        )

    @desktop_bp.post("/windows/<window_id>/front")
    def bring_to_front(window_id: str) -> Any:
        version, window = store.bring_to_front(g.user_id, window_id)
        return _envelope({"version": version, "window": window.to_json_dict()})

    @desktop_bp.delete("/windows/<window_id>")
    def delete_window(window_id: str) -> Any:
        version = store.delete_window(g.user_id, window_id)
        return _envelope({"version": version, "deleted": window_id})

    @desktop_bp.delete("/windows")
    def close_all_windows() -> Any:
        version, count = store.close_all_windows(g.user_id)
        return _envelope({"version": version, "closed": count})

    @desktop_bp.post("/reset")
    def reset_desktop() -> Any:
        return _envelope(_state_payload(store.reset(g.user_id)))

    @desktop_bp.delete("")
    def delete_desktop() -> Any:
        store.delete(g.user_id)
        return _envelope({"deleted": True})

    @desktop_bp.get("/statistics")
    def statistics() -> Any:
        return _envelope(store.statistics())

    app.register_blueprint(desktop_bp)

    @app.get("/health")
    def health() -> Any:
        return jsonify({"status": "ok"})

    @app.errorhandler(DesktopError)
    def handle_desktop_error(exc: DesktopError) -> Any:
        if exc.status >= 500:
            logger.error("Request failed: %s", exc)
        else:
            logger.info("Request rejected (%s): %s", exc.code, exc.message)
        return jsonify({"error": exc.to_dict()}), exc.status

    return app
