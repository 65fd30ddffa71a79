"""Desktop settings tests."""

from __future__ import annotations

from typing import Any

import pytest

from core.errors import ValidationError
from core.event_bus import DESKTOP_CHANGED, EventBus
from world_model.desktop_registry import DesktopRegistry
from world_model.types.desktop import DEFAULT_PINNED_APPS, DEFAULT_WALLPAPER


def build_desktop() -> tuple[DesktopRegistry, list[dict[str, Any]]]:
    bus = EventBus()
    events: list[dict[str, Any]] = []
    bus.subscribe(DESKTOP_CHANGED, events.append)
    return DesktopRegistry(event_bus=bus), events


def test_defaults() -> None:
    desktop, _ = build_desktop()

    assert desktop.theme == "dark"
    assert desktop.settings.wallpaper == DEFAULT_WALLPAPER
    assert desktop.settings.taskbar.position == "bottom"
    assert desktop.settings.taskbar.pinned_apps == list(DEFAULT_PINNED_APPS)


def test_theme_toggle_and_validation() -> None:
    desktop, events = build_desktop()

    assert desktop.toggle_theme() == "light"
    assert desktop.toggle_theme() == "dark"
    with pytest.raises(ValidationError):
        desktop.set_theme("sepia")

    assert [e["field"] for e in events] == ["theme", "theme"]
    assert all(e["debounce"] == 2.0 for e in events)


def test_icons_add_replace_move_remove() -> None:
    desktop, events = build_desktop()

    desktop.add_icon({"id": "i1", "appId": "notes", "label": "Notes", "position": {"x": 0, "y": 0}})
    desktop.add_icon({"id": "i1", "app_id": "notes", "label": "My notes", "position": {"x": 0, "y": 0}})
    assert len(desktop.settings.icons) == 1
    assert desktop.get_icon("i1").label == "My notes"

    desktop.move_icon("i1", {"x": 40, "y": 80})
    assert desktop.get_icon("i1").position.y == 80

    desktop.remove_icon("i1")
    desktop.remove_icon("i1")
    desktop.move_icon("i1", {"x": 1, "y": 1})
    assert desktop.settings.icons == []
    assert len(events) == 4


def test_taskbar_partial_update_and_pins() -> None:
    desktop, _ = build_desktop()

    desktop.update_taskbar({"position": "left"}, autohide=True)
    desktop.pin_app("clock")
    desktop.pin_app("clock")
    desktop.unpin_app("settings")

    taskbar = desktop.settings.taskbar
    assert taskbar.position == "left"
    assert taskbar.autohide is True
    assert taskbar.pinned_apps == ["file-manager", "text-editor", "clock"]

    with pytest.raises(ValidationError):
        desktop.update_taskbar(position="middle")


def test_snapshot_round_trip_and_reset() -> None:
    desktop, events = build_desktop()
    desktop.set_wallpaper("/assets/wallpapers/sea.jpg")
    desktop.set_theme("light")

    other = DesktopRegistry()
    other.load_snapshot(desktop.snapshot())
    assert other.settings == desktop.settings
    assert desktop.snapshot()["taskbar"]["pinnedApps"] == list(DEFAULT_PINNED_APPS)

    emitted = len(events)
    desktop.reset()
    assert desktop.theme == "dark"
    assert desktop.settings.wallpaper == DEFAULT_WALLPAPER
    assert len(events) == emitted
