"""Desktop settings models: wallpaper, theme, icons and taskbar."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from world_model.types.base import CamelModel
from world_model.types.window import Position

Theme = Literal["light", "dark"]
TaskbarPosition = Literal["top", "bottom", "left", "right"]

DEFAULT_WALLPAPER = "/assets/wallpapers/default.jpg"
DEFAULT_PINNED_APPS = ("file-manager", "text-editor", "settings")


class DesktopIcon(CamelModel):
    """Shortcut placed on the desktop surface."""

    id: str
    app_id: str
    icon: str = ""
    label: str = ""
    position: Position


class TaskbarConfig(CamelModel):
    position: TaskbarPosition = "bottom"
    autohide: bool = False
    pinned_apps: list[str] = Field(default_factory=lambda: list(DEFAULT_PINNED_APPS))


class DesktopSettings(CamelModel):
    """Per-user desktop preferences."""

    wallpaper: str = DEFAULT_WALLPAPER
    theme: Theme = "dark"
    icons: list[DesktopIcon] = Field(default_factory=list)
    taskbar: TaskbarConfig = Field(default_factory=TaskbarConfig)


class TaskbarPatch(CamelModel):
    position: TaskbarPosition | None = None
    autohide: bool | None = None
    pinned_apps: list[str] | None = None


class DesktopSettingsPatch(CamelModel):
    """Partial desktop update; ``None`` fields are left untouched."""

    wallpaper: str | None = None
    theme: Theme | None = None
    icons: list[DesktopIcon] | None = None
    taskbar: TaskbarPatch | None = None
