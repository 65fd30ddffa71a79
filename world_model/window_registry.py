"""In-memory window collection: lifecycle, focus, stacking and placement.

The registry is the only owner of window records. Operations that target an
unknown window id are silent no-ops so that a late keyboard shortcut or a
stale click on a window that has just closed never raises into the UI layer.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from core.errors import ValidationError
from core.event_bus import WINDOWS_CHANGED, EventBus
from world_model.types.window import (
    WINDOW_STATES,
    Position,
    Size,
    Window,
    WindowConfig,
    WindowStateType,
)

logger = logging.getLogger("desktop.windows")

BASE_Z_INDEX = 100
COMPACTION_THRESHOLD = 1000

CASCADE_BASE = 50
CASCADE_OFFSET = 30
CASCADE_MAX_X = 400

# Seconds a change waits before being persisted.
LIFECYCLE_DEBOUNCE = 1.0
GEOMETRY_DEBOUNCE = 2.0

ModelT = TypeVar("ModelT", bound=BaseModel)


def coerce_model(
    model: type[ModelT],
    value: ModelT | Mapping[str, Any] | None,
    *,
    required: bool = False,
) -> ModelT | None:
    """Accept a model instance or a plain mapping; reject anything malformed."""
    if value is None and required:
        raise ValidationError(f"Missing {model.__name__}")
    if value is None or isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {model.__name__}: {exc.errors()[0]['msg']}") from exc


class CascadePlacer:
    """Diagonal placement cursor for newly opened windows."""

    def __init__(
        self,
        viewport_height: int = 1080,
        base: int = CASCADE_BASE,
        step: int = CASCADE_OFFSET,
        max_x: int = CASCADE_MAX_X,
    ) -> None:
        self.viewport_height = viewport_height
        self.base = base
        self.step = step
        self.max_x = max_x
        self.x = base
        self.y = base

    @property
    def max_y(self) -> int:
        # Leave room for a full window above the taskbar.
        return max(100, self.viewport_height - 500)

    def next_position(self) -> Position:
        self.x += self.step
        self.y += self.step
        if self.x > self.max_x or self.y > self.max_y:
            self.reset()
        return Position(x=self.x, y=self.y)

    def reset(self) -> None:
        self.x = self.base
        self.y = self.base


class WindowRegistry:
    """Owns window records, the focus pointer and the z-index counter."""

    def __init__(
        self,
        event_bus: EventBus | None = None,
        placer: CascadePlacer | None = None,
        *,
        lifecycle_debounce: float = LIFECYCLE_DEBOUNCE,
        geometry_debounce: float = GEOMETRY_DEBOUNCE,
    ) -> None:
        self.event_bus = event_bus
        self.placer = placer or CascadePlacer()
        self.lifecycle_debounce = lifecycle_debounce
        self.geometry_debounce = geometry_debounce
        self._windows: dict[str, Window] = {}
        self.focused_window_id: str | None = None
        self.next_z_index = BASE_Z_INDEX

    # -- lifecycle -----------------------------------------------------

    def create(self, app_id: str, config: WindowConfig | Mapping[str, Any] | None = None) -> str:
        """Open a new focused window on top of the stack and return its id."""
        cfg = coerce_model(WindowConfig, config) or WindowConfig()
        z_index = self.next_z_index
        window = Window(
            app_id=app_id,
            title=cfg.title or "Untitled",
            icon=cfg.icon,
            position=cfg.position or self.cascade_position(),
            state=cfg.state or "normal",
            z_index=z_index,
            focused=True,
            resizable=_flag(cfg.resizable),
            movable=_flag(cfg.movable),
            minimizable=_flag(cfg.minimizable),
            maximizable=_flag(cfg.maximizable),
        )
        if cfg.size is not None:
            window.size = cfg.size

        for other in self._windows.values():
            other.focused = False
        self._windows[window.id] = window
        self.focused_window_id = window.id
        self.next_z_index = z_index + 1
        logger.debug("Created %s for app %s at z=%d", window.id, app_id, z_index)

        self._maybe_compact(z_index)
        self._changed(window.id, "create", self.lifecycle_debounce)
        return window.id

    def close(self, window_id: str) -> None:
        window = self._windows.pop(window_id, None)
        if window is None:
            return
        if self.focused_window_id == window_id:
            self.focused_window_id = None
            candidate = self._top_visible()
            if candidate is not None:
                self.focus(candidate.id)
        logger.debug("Closed %s", window_id)
        self._changed(window_id, "close", self.lifecycle_debounce)

    def minimize(self, window_id: str) -> None:
        window = self._windows.get(window_id)
        if window is None or not window.minimizable:
            return
        held_focus = self.focused_window_id == window_id
        window.state = "minimized"
        window.focused = False
        if held_focus:
            self.focused_window_id = None
            candidate = self._top_visible()
            if candidate is not None:
                self.focus(candidate.id)
        self._changed(window_id, "minimize", self.lifecycle_debounce)

    def maximize(self, window_id: str) -> None:
        """Toggle between maximized and normal, then bring to front."""
        window = self._windows.get(window_id)
        if window is None or not window.maximizable:
            return
        window.state = "normal" if window.state == "maximized" else "maximized"
        self.focus(window_id)
        self._changed(window_id, "maximize", self.lifecycle_debounce)

    def restore(self, window_id: str) -> None:
        """Return to ``normal`` from any state; prior maximization is not remembered."""
        window = self._windows.get(window_id)
        if window is None:
            return
        window.state = "normal"
        self.focus(window_id)
        self._changed(window_id, "restore", self.lifecycle_debounce)

    def focus(self, window_id: str) -> None:
        window = self._windows.get(window_id)
        if window is None:
            return
        z_index = self.next_z_index
        for other in self._windows.values():
            other.focused = other.id == window_id
        window.z_index = z_index
        self.focused_window_id = window_id
        self.next_z_index = z_index + 1
        self._maybe_compact(z_index)
        self._changed(window_id, "focus", self.lifecycle_debounce)

    # -- field updates -------------------------------------------------

    def move(self, window_id: str, position: Position | Mapping[str, Any]) -> None:
        window = self._windows.get(window_id)
        if window is None or not window.movable:
            return
        window.position = coerce_model(Position, position, required=True)
        self._changed(window_id, "move", self.geometry_debounce)

    def resize(self, window_id: str, size: Size | Mapping[str, Any]) -> None:
        window = self._windows.get(window_id)
        if window is None or not window.resizable:
            return
        window.size = coerce_model(Size, size, required=True)
        self._changed(window_id, "resize", self.geometry_debounce)

    def rename(self, window_id: str, title: str) -> None:
        window = self._windows.get(window_id)
        if window is None:
            return
        window.title = title
        self._changed(window_id, "rename", self.lifecycle_debounce)

    def set_state(self, window_id: str, state: WindowStateType | str) -> None:
        if state not in WINDOW_STATES:
            raise ValidationError(f"Unknown window state: {state!r}")
        window = self._windows.get(window_id)
        if window is None:
            return
        window.state = state  # type: ignore[assignment]
        self._changed(window_id, "set_state", self.lifecycle_debounce)

    # -- queries -------------------------------------------------------

    def get(self, window_id: str) -> Window | None:
        return self._windows.get(window_id)

    def all(self) -> list[Window]:
        return list(self._windows.values())

    def visible_windows(self) -> list[Window]:
        """Non-minimized windows, back to front."""
        return sorted(
            (w for w in self._windows.values() if w.state != "minimized"),
            key=lambda w: w.z_index,
        )

    def minimized_windows(self) -> list[Window]:
        return [w for w in self._windows.values() if w.state == "minimized"]

    def windows_by_app(self, app_id: str) -> list[Window]:
        return [w for w in self._windows.values() if w.app_id == app_id]

    def __len__(self) -> int:
        return len(self._windows)

    def __contains__(self, window_id: object) -> bool:
        return window_id in self._windows

    # -- stacking & placement -----------------------------------------

    def cascade_position(self) -> Position:
        return self.placer.next_position()

    def compact_z_indices(self) -> None:
        """Renumber z-indices contiguously from the base, keeping their order."""
        ordered = sorted(self._windows.values(), key=lambda w: w.z_index)
        for offset, window in enumerate(ordered):
            window.z_index = BASE_Z_INDEX + offset
        self.next_z_index = BASE_Z_INDEX + len(ordered)
        logger.debug("Compacted z-indices for %d windows", len(ordered))

    # -- bulk state ----------------------------------------------------

    def reset(self) -> None:
        self._windows.clear()
        self.focused_window_id = None
        self.next_z_index = BASE_Z_INDEX
        self.placer.reset()

    def snapshot(self) -> dict[str, Any]:
        """Serializable ``{windows, focusedWindowId}`` layout."""
        return {
            "windows": {wid: w.to_json_dict() for wid, w in self._windows.items()},
            "focusedWindowId": self.focused_window_id,
        }

    def load_snapshot(self, data: Mapping[str, Any]) -> None:
        windows = data.get("windows") or {}
        if isinstance(windows, Mapping):
            windows = list(windows.values())
        self.load_windows(windows, data.get("focusedWindowId"))

    def load_windows(
        self,
        windows: Iterable[Window | Mapping[str, Any]],
        focused_window_id: str | None = None,
    ) -> None:
        """Replace the whole collection, re-establishing focus and counter."""
        loaded = [coerce_model(Window, item, required=True) for item in windows]
        self._windows = {w.id: w for w in loaded}

        if focused_window_id not in self._windows:
            flagged = [w for w in self._windows.values() if w.focused]
            focused_window_id = max(flagged, key=lambda w: w.z_index).id if flagged else None
        for window in self._windows.values():
            window.focused = window.id == focused_window_id
        self.focused_window_id = focused_window_id

        top = max((w.z_index for w in self._windows.values()), default=BASE_Z_INDEX - 1)
        self.next_z_index = max(BASE_Z_INDEX, top + 1)
        if self.next_z_index > COMPACTION_THRESHOLD:
            self.compact_z_indices()

    # -- internals -----------------------------------------------------

    def _top_visible(self) -> Window | None:
        visible = self.visible_windows()
        return visible[-1] if visible else None

    def _maybe_compact(self, used_z_index: int) -> None:
        if used_z_index > COMPACTION_THRESHOLD:
            self.compact_z_indices()

    def _changed(self, window_id: str, action: str, debounce: float) -> None:
        if self.event_bus is None:
            return
        self.event_bus.emit(
            WINDOWS_CHANGED,
            {"window_id": window_id, "action": action, "debounce": debounce},
        )


def _flag(value: bool | None) -> bool:
    return True if value is None else value
