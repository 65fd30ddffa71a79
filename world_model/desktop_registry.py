"""Desktop settings owner: wallpaper, theme, icons and taskbar."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from core.errors import ValidationError
from core.event_bus import DESKTOP_CHANGED, EventBus
from world_model.types.desktop import DesktopIcon, DesktopSettings, TaskbarPatch
from world_model.types.window import Position
from world_model.window_registry import coerce_model

logger = logging.getLogger("desktop.settings")

DESKTOP_DEBOUNCE = 2.0
THEMES = ("light", "dark")


class DesktopRegistry:
    """Mutates the session's desktop settings and announces every change."""

    def __init__(self, event_bus: EventBus | None = None, debounce: float = DESKTOP_DEBOUNCE) -> None:
        self.event_bus = event_bus
        self.debounce = debounce
        self.settings = DesktopSettings()

    @property
    def theme(self) -> str:
        return self.settings.theme

    def set_wallpaper(self, wallpaper: str) -> None:
        self.settings.wallpaper = wallpaper
        self._changed("wallpaper")

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValidationError(f"Unknown theme: {theme!r}")
        self.settings.theme = theme  # type: ignore[assignment]
        self._changed("theme")

    def toggle_theme(self) -> str:
        self.set_theme("light" if self.settings.theme == "dark" else "dark")
        return self.settings.theme

    def add_icon(self, icon: DesktopIcon | Mapping[str, Any]) -> None:
        """Place an icon; an icon with the same id is replaced."""
        placed = coerce_model(DesktopIcon, icon, required=True)
        self.settings.icons = [i for i in self.settings.icons if i.id != placed.id]
        self.settings.icons.append(placed)
        self._changed("icons")

    def remove_icon(self, icon_id: str) -> None:
        remaining = [i for i in self.settings.icons if i.id != icon_id]
        if len(remaining) == len(self.settings.icons):
            return
        self.settings.icons = remaining
        self._changed("icons")

    def move_icon(self, icon_id: str, position: Position | Mapping[str, Any]) -> None:
        target = next((i for i in self.settings.icons if i.id == icon_id), None)
        if target is None:
            return
        target.position = coerce_model(Position, position, required=True)
        self._changed("icons")

    def get_icon(self, icon_id: str) -> DesktopIcon | None:
        return next((i for i in self.settings.icons if i.id == icon_id), None)

    def update_taskbar(self, patch: TaskbarPatch | Mapping[str, Any] | None = None, **fields: Any) -> None:
        """Merge a partial taskbar config over the current one."""
        merged: dict[str, Any] = {}
        if patch is not None:
            merged.update(coerce_model(TaskbarPatch, patch).model_dump(exclude_none=True))
        if fields:
            merged.update(coerce_model(TaskbarPatch, fields).model_dump(exclude_none=True))
        taskbar = self.settings.taskbar
        for key, value in merged.items():
            setattr(taskbar, key, value)
        self._changed("taskbar")

    def pin_app(self, app_id: str) -> None:
        pinned = self.settings.taskbar.pinned_apps
        if app_id in pinned:
            return
        self.update_taskbar(pinned_apps=[*pinned, app_id])

    def unpin_app(self, app_id: str) -> None:
        pinned = self.settings.taskbar.pinned_apps
        if app_id not in pinned:
            return
        self.update_taskbar(pinned_apps=[a for a in pinned if a != app_id])

    def reset(self) -> None:
        self.settings = DesktopSettings()
        logger.info("Desktop settings reset to defaults")

    def snapshot(self) -> dict[str, Any]:
        return self.settings.to_json_dict()

    def load_snapshot(self, data: Mapping[str, Any]) -> None:
        self.settings = coerce_model(DesktopSettings, data, required=True)

    def _changed(self, field: str) -> None:
        logger.debug("Desktop %s changed", field)
        if self.event_bus is None:
            return
        self.event_bus.emit(DESKTOP_CHANGED, {"field": field, "debounce": self.debounce})
