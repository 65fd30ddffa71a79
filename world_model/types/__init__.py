"""Typed world-model records."""

from world_model.types.app import AppDescriptor, AppWindowConfig, LaunchConfig
from world_model.types.desktop import (
    DesktopIcon,
    DesktopSettings,
    DesktopSettingsPatch,
    TaskbarConfig,
    TaskbarPatch,
)
from world_model.types.window import Position, Size, Window, WindowConfig

__all__ = [
    "AppDescriptor",
    "AppWindowConfig",
    "DesktopIcon",
    "DesktopSettings",
    "DesktopSettingsPatch",
    "LaunchConfig",
    "Position",
    "Size",
    "TaskbarConfig",
    "TaskbarPatch",
    "Window",
    "WindowConfig",
]
