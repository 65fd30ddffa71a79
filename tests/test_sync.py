"""Two devices syncing one account through the in-process API."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from core.orchestrator import DesktopSession, Orchestrator
from core.scheduler import ManualClock
from persistence.remote_client import DesktopApiClient

RemoteFactory = Callable[..., DesktopApiClient]
ROOT = Path(__file__).resolve().parents[1]


def build_device(tmp_path: Path, name: str, remote: DesktopApiClient) -> DesktopSession:
    overrides = {
        "paths": {
            "workspace_dir": str(tmp_path / name),
            "cache_dir": str(tmp_path / name / "cache"),
            "db_path": str(tmp_path / name / "unused.db"),
        },
    }
    return Orchestrator(ROOT, overrides=overrides, clock=ManualClock(), remote=remote).build()


def test_layout_follows_user_to_second_device(tmp_path: Path, remote_for: RemoteFactory) -> None:
    laptop = build_device(tmp_path, "laptop", remote_for())
    notes = laptop.apps.launch("notes")
    laptop.apps.launch("clock")
    laptop.windows.focus(notes)
    laptop.desktop.set_theme("dark")
    laptop.close()

    desktop_pc = build_device(tmp_path, "desktop-pc", remote_for())

    assert {w.app_id for w in desktop_pc.windows.all()} == {"notes", "clock"}
    assert desktop_pc.windows.focused_window_id == notes
    assert desktop_pc.desktop.theme == "dark"
    assert desktop_pc.persistence.version == laptop.persistence.version


def test_stale_device_gets_conflict_then_discards(tmp_path: Path, remote_for: RemoteFactory) -> None:
    laptop = build_device(tmp_path, "laptop", remote_for())
    phone = build_device(tmp_path, "phone", remote_for())

    laptop.desktop.set_wallpaper("/laptop.jpg")
    laptop.close()
    phone.desktop.set_wallpaper("/phone.jpg")
    phone.close()

    assert phone.persistence.conflicts == {"desktop"}
    assert phone.persistence.resolve_conflict("desktop", "discard") is True
    assert phone.desktop.settings.wallpaper == "/laptop.jpg"


def test_stale_device_reapplies_local_change(tmp_path: Path, remote_for: RemoteFactory) -> None:
    laptop = build_device(tmp_path, "laptop", remote_for())
    phone = build_device(tmp_path, "phone", remote_for())

    laptop.apps.launch("notes")
    laptop.close()
    phone.apps.launch("clock")
    phone.close()
    assert phone.persistence.conflicts == {"windows"}

    assert phone.persistence.resolve_conflict("windows", "reapply") is True

    fresh = build_device(tmp_path, "tablet", remote_for())
    assert [w.app_id for w in fresh.windows.all()] == ["clock"]


def test_reset_clears_server_and_cache(tmp_path: Path, remote_for: RemoteFactory) -> None:
    laptop = build_device(tmp_path, "laptop", remote_for())
    laptop.apps.launch("notes")
    laptop.desktop.set_theme("light")
    laptop.close()

    laptop.reset()

    assert len(laptop.windows) == 0
    fresh = build_device(tmp_path, "tablet", remote_for())
    assert len(fresh.windows) == 0
    assert fresh.desktop.settings.taskbar.pinned_apps == []


def test_refresh_does_not_let_stale_edit_overwrite_other_device(
    tmp_path: Path, remote_for: RemoteFactory
) -> None:
    laptop = build_device(tmp_path, "laptop", remote_for())
    phone = build_device(tmp_path, "phone", remote_for())

    phone.desktop.set_wallpaper("/phone.jpg")
    laptop.desktop.set_wallpaper("/laptop.jpg")
    laptop.close()

    assert phone.persistence.refresh_from_server() is True
    phone.close()

    assert phone.persistence.conflicts == {"desktop"}
    assert phone.desktop.settings.wallpaper == "/phone.jpg"
    tablet = build_device(tmp_path, "tablet", remote_for())
    assert tablet.desktop.settings.wallpaper == "/laptop.jpg"

    assert phone.persistence.resolve_conflict("desktop", "reapply") is True
    after = build_device(tmp_path, "desktop-pc", remote_for())
    assert after.desktop.settings.wallpaper == "/phone.jpg"


def test_offline_layout_seeds_new_account(tmp_path: Path, remote_for: RemoteFactory) -> None:
    offline = build_device(tmp_path, "laptop", remote_for(None))
    offline.apps.launch("notes")
    offline.desktop.set_theme("light")
    offline.close()

    online = build_device(tmp_path, "laptop", remote_for())

    assert [w.app_id for w in online.windows.all()] == ["notes"]
    assert online.desktop.theme == "light"
    tablet = build_device(tmp_path, "tablet", remote_for())
    assert [w.app_id for w in tablet.windows.all()] == ["notes"]
    assert tablet.desktop.theme == "light"
    assert tablet.persistence.version == online.persistence.version
