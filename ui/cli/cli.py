"""CLI entrypoint for the desktop simulator."""

from __future__ import annotations

from typing import Optional

import typer

from ui.cli import commands

app = typer.Typer(help="Desktop environment simulator")
apps_app = typer.Typer(help="Application commands")
windows_app = typer.Typer(help="Window commands")
desktop_app = typer.Typer(help="Desktop settings commands")
sync_app = typer.Typer(help="Server sync commands")
config_app = typer.Typer(help="Configuration commands")


@app.command("launch")
def launch_cmd(
    app_id: str = typer.Argument(..., help="Application id"),
    x: Optional[int] = typer.Option(None, help="Window x position"),
    y: Optional[int] = typer.Option(None, help="Window y position"),
) -> None:
    """Launch an application in a new window."""
    commands.launch(app_id=app_id, x=x, y=y)


@app.command("serve")
def serve_cmd(
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Bind port"),
) -> None:
    """Run the desktop state API server."""
    commands.serve(host=host, port=port)


@apps_app.command("list")
def apps_list_cmd(category: Optional[str] = typer.Option(None, help="Filter by category")) -> None:
    """List registered applications."""
    commands.apps_list(category=category)


@apps_app.command("search")
def apps_search_cmd(query: str) -> None:
    """Search applications by name, description or category."""
    commands.apps_search(query=query)


@windows_app.command("list")
def windows_list_cmd(
    visible_only: bool = typer.Option(False, "--visible-only", help="Hide minimized windows"),
) -> None:
    """List open windows."""
    commands.windows_list(include_minimized=not visible_only)


@windows_app.command("close")
def windows_close_cmd(window_id: str) -> None:
    commands.windows_close(window_id)


@windows_app.command("focus")
def windows_focus_cmd(window_id: str) -> None:
    commands.windows_focus(window_id)


@windows_app.command("minimize")
def windows_minimize_cmd(window_id: str) -> None:
    commands.windows_minimize(window_id)


@windows_app.command("maximize")
def windows_maximize_cmd(window_id: str) -> None:
    """Toggle maximized state."""
    commands.windows_maximize(window_id)


@windows_app.command("restore")
def windows_restore_cmd(window_id: str) -> None:
    commands.windows_restore(window_id)


@windows_app.command("move")
def windows_move_cmd(window_id: str, x: int, y: int) -> None:
    commands.windows_move(window_id, x=x, y=y)


@windows_app.command("resize")
def windows_resize_cmd(window_id: str, width: int, height: int) -> None:
    commands.windows_resize(window_id, width=width, height=height)


@desktop_app.command("show")
def desktop_show_cmd() -> None:
    """Show desktop settings."""
    commands.desktop_show()


@desktop_app.command("wallpaper")
def desktop_wallpaper_cmd(wallpaper: str) -> None:
    commands.desktop_wallpaper(wallpaper)


@desktop_app.command("theme")
def desktop_theme_cmd(
    theme: Optional[str] = typer.Argument(None, help="light or dark; toggles when omitted"),
) -> None:
    commands.desktop_theme(theme)


@desktop_app.command("reset")
def desktop_reset_cmd() -> None:
    """Close all windows and restore default settings."""
    commands.desktop_reset()


@sync_app.command("resolve")
def sync_resolve_cmd(
    slice_name: str = typer.Argument(..., help="windows or desktop"),
    strategy: str = typer.Option("discard", help="discard or reapply"),
) -> None:
    """Resolve a version conflict reported by the server."""
    commands.sync_resolve(slice_name=slice_name, strategy=strategy)


@config_app.command("show")
def config_show_cmd() -> None:
    """Show effective configuration."""
    commands.config_show()


app.add_typer(apps_app, name="apps")
app.add_typer(windows_app, name="windows")
app.add_typer(desktop_app, name="desktop")
app.add_typer(sync_app, name="sync")
app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
