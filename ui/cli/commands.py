"""Typer command handlers."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import typer

from core.errors import DesktopError
from core.orchestrator import DesktopSession, Orchestrator


def _session(root: Path | None = None) -> DesktopSession:
    return Orchestrator(root=root).build()


def _echo_json(payload: object) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _window_action(window_id: str, action: Callable[[DesktopSession], None]) -> None:
    session = _session()
    if window_id not in session.windows:
        typer.echo(f"No window {window_id}", err=True)
        raise typer.Exit(code=1)
    try:
        action(session)
    except DesktopError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    session.close()
    window = session.windows.get(window_id)
    typer.echo(f"{window_id}: {window.state if window else 'closed'}")


def apps_list(category: str | None = None) -> None:
    """List registered applications."""
    session = _session()
    for app in session.apps.list_apps(category):
        typer.echo(f"{app.id}\t{app.name}\t{app.category}")


def apps_search(query: str) -> None:
    session = _session()
    matches = session.apps.search(query)
    if not matches:
        typer.echo("No matching apps.")
        return
    for app in matches:
        typer.echo(f"{app.id}\t{app.name}\t{app.description}")


def launch(app_id: str, x: int | None = None, y: int | None = None) -> None:
    """Launch an app and persist the new layout."""
    session = _session()
    config: dict[str, Any] = {}
    if x is not None and y is not None:
        config["position"] = {"x": x, "y": y}
    try:
        window_id = session.apps.launch(app_id, config)
    except DesktopError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    session.close()
    typer.echo(window_id)


def windows_list(include_minimized: bool = True) -> None:
    session = _session()
    windows = session.windows.visible_windows()
    if include_minimized:
        windows = session.windows.minimized_windows() + windows
    for window in windows:
        marker = "*" if window.focused else " "
        typer.echo(
            f"{marker} {window.id}\t{window.app_id}\t{window.state}\tz={window.z_index}"
            f"\t({window.position.x},{window.position.y}) {window.size.width}x{window.size.height}"
        )


def windows_close(window_id: str) -> None:
    _window_action(window_id, lambda s: s.windows.close(window_id))


def windows_focus(window_id: str) -> None:
    _window_action(window_id, lambda s: s.windows.focus(window_id))


def windows_minimize(window_id: str) -> None:
    _window_action(window_id, lambda s: s.windows.minimize(window_id))


def windows_maximize(window_id: str) -> None:
    _window_action(window_id, lambda s: s.windows.maximize(window_id))


def windows_restore(window_id: str) -> None:
    _window_action(window_id, lambda s: s.windows.restore(window_id))


def windows_move(window_id: str, x: int, y: int) -> None:
    _window_action(window_id, lambda s: s.windows.move(window_id, {"x": x, "y": y}))


def windows_resize(window_id: str, width: int, height: int) -> None:
    _window_action(
        window_id, lambda s: s.windows.resize(window_id, {"width": width, "height": height})
    )


def desktop_show() -> None:
    session = _session()
    _echo_json(session.desktop.snapshot())


def desktop_wallpaper(wallpaper: str) -> None:
    session = _session()
    session.desktop.set_wallpaper(wallpaper)
    session.close()
    typer.echo(f"Wallpaper: {wallpaper}")


def desktop_theme(theme: str | None = None) -> None:
    """Set the theme, or toggle it when none is given."""
    session = _session()
    try:
        if theme is None:
            theme = session.desktop.toggle_theme()
        else:
            session.desktop.set_theme(theme)
    except DesktopError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    session.close()
    typer.echo(f"Theme: {theme}")


def desktop_reset() -> None:
    session = _session()
    session.reset()
    typer.echo("Desktop reset to defaults.")


def sync_resolve(slice_name: str, strategy: str) -> None:
    session = _session()
    try:
        resolved = session.persistence.resolve_conflict(slice_name, strategy)
    except DesktopError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo("resolved" if resolved else "sync unavailable")


def config_show() -> None:
    """Show effective runtime config."""
    _echo_json(Orchestrator().config())


def serve(host: str | None = None, port: int | None = None) -> None:
    """Run the desktop state API server."""
    orchestrator = Orchestrator()
    server_cfg = orchestrator.config().get("server", {})
    app = orchestrator.build_server()
    app.run(host=host or server_cfg.get("host", "127.0.0.1"), port=port or int(server_cfg.get("port", 5000)))
