"""Debounced local-cache writer and best-effort server synchronizer.

Every save runs in two steps. The slice is first written to the local cache,
which is what the next start-up reads and therefore is never skipped. The
same slice is then pushed to the server together with the last-known record
version. Push failures are logged and swallowed; a version conflict is also
remembered in :attr:`PersistenceBridge.conflicts` so the caller can decide to
discard or reapply the local change via :meth:`resolve_conflict`; until then
that slice is only written locally.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from core.errors import DesktopError, ValidationError, VersionConflictError
from core.event_bus import DESKTOP_CHANGED, WINDOWS_CHANGED, EventBus, Unsubscribe
from core.scheduler import TaskScheduler
from persistence.local_cache import LocalCache
from persistence.remote_client import DesktopApiClient
from world_model.desktop_registry import DesktopRegistry
from world_model.types.desktop import DesktopSettings
from world_model.types.window import Window
from world_model.window_registry import WindowRegistry, coerce_model

logger = logging.getLogger("desktop.persistence")

WINDOW_CACHE_KEY = "windowState"
DESKTOP_CACHE_KEY = "desktopState"

WINDOWS = "windows"
DESKTOP = "desktop"
SLICES = (WINDOWS, DESKTOP)
STRATEGIES = ("discard", "reapply")


class PersistenceBridge:
    """Keeps the local cache and the server record in step with the registries."""

    def __init__(
        self,
        *,
        windows: WindowRegistry,
        desktop: DesktopRegistry,
        cache: LocalCache,
        scheduler: TaskScheduler,
        event_bus: EventBus | None = None,
        remote: DesktopApiClient | None = None,
    ) -> None:
        self.windows = windows
        self.desktop = desktop
        self.cache = cache
        self.scheduler = scheduler
        self.remote = remote
        self.version: int | None = None
        self.conflicts: set[str] = set()
        self._subscriptions: list[Unsubscribe] = []
        if event_bus is not None:
            self._subscriptions = [
                event_bus.subscribe(WINDOWS_CHANGED, self._on_windows_changed),
                event_bus.subscribe(DESKTOP_CHANGED, self._on_desktop_changed),
            ]

    # -- scheduling ------------------------------------------------------

    def _on_windows_changed(self, payload: dict[str, Any]) -> None:
        delay = float(payload.get("debounce", self.windows.lifecycle_debounce))
        self.scheduler.schedule(WINDOWS, delay, self.save_windows)

    def _on_desktop_changed(self, payload: dict[str, Any]) -> None:
        delay = float(payload.get("debounce", self.desktop.debounce))
        self.scheduler.schedule(DESKTOP, delay, self.save_desktop)

    def flush(self) -> list[str]:
        """Write every pending slice now."""
        return self.scheduler.flush()

    def detach(self) -> None:
        """Stop listening for registry changes; pending saves are left as they are."""
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

    def can_sync(self) -> bool:
        return self.remote is not None and self.remote.has_credential()

    # -- saving ----------------------------------------------------------

    def save_windows(self) -> bool:
        snapshot = self.windows.snapshot()
        self._write_local(WINDOW_CACHE_KEY, snapshot)
        windows = list(snapshot["windows"].values())
        return self._push(WINDOWS, lambda version: self.remote.put_windows(windows, version))

    def save_desktop(self) -> bool:
        snapshot = self.desktop.snapshot()
        self._write_local(DESKTOP_CACHE_KEY, snapshot)
        return self._push(DESKTOP, lambda version: self.remote.put_state(snapshot, version))

    def _write_local(self, key: str, value: dict[str, Any]) -> None:
        try:
            self.cache.set_item(key, value)
        except OSError as exc:
            logger.error("Failed to save %s to local cache: %s", key, exc)

    def _push(self, slice_name: str, send: Callable[[int | None], dict[str, Any]]) -> bool:
        if not self.can_sync():
            logger.debug("Cannot sync %s yet; kept in local cache only", slice_name)
            return False
        if slice_name in self.conflicts:
            logger.info("%s has an unresolved conflict; kept in local cache only", slice_name)
            return False
        try:
            result = send(self.version)
        except VersionConflictError as exc:
            self.conflicts.add(slice_name)
            logger.warning("Server rejected %s save: %s", slice_name, exc)
            return False
        except DesktopError as exc:
            logger.warning("Failed to sync %s with backend: %s", slice_name, exc)
            return False
        self._advance_version(result.get("version"))
        self.conflicts.discard(slice_name)
        return True

    def _advance_version(self, version: Any) -> None:
        # A late response must never move the known version backwards.
        if isinstance(version, int) and (self.version is None or version > self.version):
            self.version = version

    # -- loading ---------------------------------------------------------

    def load(self) -> bool:
        """Restore the local cache, then let the server copy win if reachable."""
        self.load_local()
        return self.refresh_from_server()

    def load_local(self) -> None:
        desktop = self.cache.get_item(DESKTOP_CACHE_KEY)
        if desktop:
            try:
                self.desktop.load_snapshot(desktop)
            except ValidationError as exc:
                logger.error("Ignoring unreadable cached desktop state: %s", exc)
        windows = self.cache.get_item(WINDOW_CACHE_KEY)
        if windows:
            try:
                self.windows.load_snapshot(windows)
            except ValidationError as exc:
                logger.error("Ignoring unreadable cached window state: %s", exc)

    def refresh_from_server(self) -> bool:
        """Reconcile in-memory state with the server record when it can be fetched.

        A record nobody has written yet is seeded from local state. Otherwise
        the server copy replaces every slice without a pending save. A pending
        slice survives only if the server has not moved past the version it
        was edited against; if it has, the slice becomes a conflict.
        """
        if not self.can_sync():
            return False
        try:
            state = self.remote.get_state()
            windows = self.remote.get_windows()
        except DesktopError as exc:
            logger.warning("Failed to load desktop state from backend: %s", exc)
            return False

        version = windows.get("version", state.get("version"))
        if state.get("pristine"):
            return self._seed_server(version)

        try:
            server_desktop = coerce_model(DesktopSettings, state.get("desktop") or None)
            server_windows = [
                coerce_model(Window, item, required=True) for item in windows.get("windows") or []
            ]
        except ValidationError as exc:
            logger.error("Ignoring unreadable desktop state from backend: %s", exc)
            return False

        behind = self.version != version
        if self._has_local_changes(DESKTOP):
            self._keep_local(DESKTOP, behind, version)
        elif server_desktop is not None:
            self.desktop.load_snapshot(server_desktop)
            self._write_local(DESKTOP_CACHE_KEY, self.desktop.snapshot())

        if self._has_local_changes(WINDOWS):
            self._keep_local(WINDOWS, behind, version)
        else:
            self.windows.load_windows(server_windows)
            self._write_local(WINDOW_CACHE_KEY, self.windows.snapshot())

        if isinstance(version, int):
            self.version = version
        logger.info("Loaded desktop state from backend (version %s)", self.version)
        return True

    def _seed_server(self, version: Any) -> bool:
        if isinstance(version, int):
            self.version = version
        logger.info("Backend has no saved desktop yet; uploading local state")
        self.scheduler.cancel(DESKTOP)
        self.scheduler.cancel(WINDOWS)
        self.save_desktop()
        self.save_windows()
        return True

    def _has_local_changes(self, slice_name: str) -> bool:
        return self.scheduler.is_pending(slice_name) or slice_name in self.conflicts

    def _keep_local(self, slice_name: str, behind: bool, server_version: Any) -> None:
        if not behind:
            logger.info("Keeping unsaved local %s changes over server copy", slice_name)
            return
        # Edited against an older version; never pushed until resolved.
        self.scheduler.cancel(slice_name)
        if slice_name == DESKTOP:
            self._write_local(DESKTOP_CACHE_KEY, self.desktop.snapshot())
        else:
            self._write_local(WINDOW_CACHE_KEY, self.windows.snapshot())
        self.conflicts.add(slice_name)
        logger.warning(
            "Unsaved local %s changes conflict with server version %s", slice_name, server_version
        )

    # -- conflicts & reset --------------------------------------------

    def resolve_conflict(self, slice_name: str, strategy: str) -> bool:
        """Re-fetch the server version and either drop or re-push the local slice."""
        if slice_name not in SLICES:
            raise ValidationError(f"Unknown slice: {slice_name!r}")
        if strategy not in STRATEGIES:
            raise ValidationError(f"Unknown conflict strategy: {strategy!r}")
        if not self.can_sync():
            return False

        if slice_name == DESKTOP:
            server = self.remote.get_state()
        else:
            server = self.remote.get_windows()
        self.version = server.get("version", self.version)

        if strategy == "reapply":
            self.conflicts.discard(slice_name)
            if slice_name == DESKTOP:
                return self.save_desktop()
            return self.save_windows()

        if slice_name == DESKTOP:
            self.scheduler.cancel(DESKTOP)
            self.desktop.load_snapshot(server["desktop"])
            self._write_local(DESKTOP_CACHE_KEY, self.desktop.snapshot())
        else:
            self.scheduler.cancel(WINDOWS)
            self.windows.load_windows(server.get("windows") or [])
            self._write_local(WINDOW_CACHE_KEY, self.windows.snapshot())
        self.conflicts.discard(slice_name)
        logger.info("Discarded local %s changes in favour of version %s", slice_name, self.version)
        return True

    def clear_local(self) -> None:
        self.scheduler.cancel(WINDOWS)
        self.scheduler.cancel(DESKTOP)
        self.cache.remove_item(WINDOW_CACHE_KEY)
        self.cache.remove_item(DESKTOP_CACHE_KEY)

    def reset_remote(self) -> bool:
        if not self.can_sync():
            return False
        try:
            result = self.remote.reset()
        except DesktopError as exc:
            logger.warning("Failed to reset desktop on backend: %s", exc)
            return False
        self._advance_version(result.get("version"))
        return True
