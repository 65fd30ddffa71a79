"""Top-level wiring of a desktop session and of the API server."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from flask import Flask

from core.event_bus import EventBus
from core.logging_setup import configure_logging
from core.policy_runtime import ensure_runtime_dirs, load_effective_config, sync_token
from core.scheduler import Clock, TaskScheduler
from persistence.bridge import PersistenceBridge
from persistence.local_cache import LocalCache
from persistence.remote_client import DesktopApiClient
from server.api import TokenAuthenticator, create_app
from server.record_store import ServerRecordStore
from server.sql_store import SQLStore
from world_model.app_registry import AppRegistry
from world_model.desktop_registry import DesktopRegistry
from world_model.window_registry import CascadePlacer, WindowRegistry


@dataclass
class DesktopSession:
    """Application context: every service one user session needs."""

    config: dict[str, Any]
    event_bus: EventBus
    scheduler: TaskScheduler
    windows: WindowRegistry
    desktop: DesktopRegistry
    apps: AppRegistry
    persistence: PersistenceBridge

    def run_pending(self) -> list[str]:
        """Fire debounced saves that are due."""
        return self.scheduler.run_due()

    def close(self) -> None:
        """Write pending saves and stop tracking further changes."""
        self.persistence.flush()
        self.persistence.detach()

    def reset(self) -> None:
        """Account-level reset: drop all windows and restore default settings."""
        self.windows.reset()
        self.desktop.reset()
        self.persistence.clear_local()
        self.persistence.reset_remote()


class Orchestrator:
    """Creates and wires runtime components for the CLI and the server."""

    def __init__(
        self,
        root: Path | None = None,
        *,
        overrides: dict[str, Any] | None = None,
        clock: Clock | None = None,
        remote: DesktopApiClient | None = None,
    ) -> None:
        default_root = Path(__file__).resolve().parents[1]
        self.root = (root or default_root).resolve()
        self.overrides = overrides
        self.clock = clock
        self.remote = remote

    def config(self) -> dict[str, Any]:
        return load_effective_config(self.root, self.overrides)

    def build(self, *, load: bool = True) -> DesktopSession:
        config = self.config()
        configure_logging(config)
        paths = ensure_runtime_dirs(self.root, config)
        persistence_cfg = config.get("persistence", {})

        event_bus = EventBus()
        scheduler = TaskScheduler(clock=self.clock)
        windows = WindowRegistry(
            event_bus=event_bus,
            placer=CascadePlacer(viewport_height=int(config.get("viewport", {}).get("height", 1080))),
            lifecycle_debounce=float(persistence_cfg.get("window_debounce_seconds", 1.0)),
            geometry_debounce=float(persistence_cfg.get("window_geometry_debounce_seconds", 2.0)),
        )
        desktop = DesktopRegistry(
            event_bus=event_bus,
            debounce=float(persistence_cfg.get("desktop_debounce_seconds", 2.0)),
        )
        apps = AppRegistry(windows=windows)
        apps.load_system_apps(config.get("apps", []))

        persistence = PersistenceBridge(
            windows=windows,
            desktop=desktop,
            cache=LocalCache(paths["cache_dir"]),
            scheduler=scheduler,
            event_bus=event_bus,
            remote=self.remote or self._remote(config),
        )
        if load:
            persistence.load()

        return DesktopSession(
            config=config,
            event_bus=event_bus,
            scheduler=scheduler,
            windows=windows,
            desktop=desktop,
            apps=apps,
            persistence=persistence,
        )

    def build_server(self) -> Flask:
        config = self.config()
        configure_logging(config)
        paths = ensure_runtime_dirs(self.root, config)
        server_cfg = config.get("server", {})
        sql_store = SQLStore(
            paths["db_path"], busy_timeout=float(server_cfg.get("busy_timeout_seconds", 5))
        )
        store = ServerRecordStore(sql_store)
        tokens = server_cfg.get("tokens") or {}
        return create_app(store, TokenAuthenticator(tokens))

    @staticmethod
    def _remote(config: dict[str, Any]) -> DesktopApiClient | None:
        sync_cfg = config.get("sync", {})
        if not sync_cfg.get("enabled", False):
            return None
        return DesktopApiClient(
            base_url=str(sync_cfg.get("base_url", "http://127.0.0.1:5000/api/v1")),
            token_provider=lambda: sync_token(config),
            timeout=float(sync_cfg.get("timeout_seconds", 5)),
        )
