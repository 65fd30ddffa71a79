"""Registry of launchable application descriptors."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from core.errors import AppNotFoundError, ValidationError
from world_model.types.app import AppDescriptor, LaunchConfig
from world_model.types.window import WindowConfig
from world_model.window_registry import WindowRegistry, coerce_model

logger = logging.getLogger("desktop.apps")


class AppRegistry:
    """Maps application ids to descriptors and turns launches into windows."""

    def __init__(self, windows: WindowRegistry) -> None:
        self.windows = windows
        self._apps: dict[str, AppDescriptor] = {}
        self._installed: list[str] = []

    def register(self, descriptor: AppDescriptor | Mapping[str, Any]) -> AppDescriptor:
        """Add or overwrite a descriptor; id, name and entry point are required."""
        if isinstance(descriptor, Mapping):
            missing = [f for f in ("id", "name", "entry_point") if not _field(descriptor, f)]
            if missing:
                raise ValidationError(f"Invalid app descriptor, missing: {', '.join(missing)}")
            try:
                descriptor = AppDescriptor.model_validate(descriptor)
            except PydanticValidationError as exc:
                raise ValidationError(f"Invalid app descriptor: {exc.errors()[0]['msg']}") from exc
        if not descriptor.id or not descriptor.name or not descriptor.entry_point:
            raise ValidationError("Invalid app descriptor: id, name and entry point are required")

        if descriptor.id in self._apps:
            logger.warning("App %s is already registered. Overwriting...", descriptor.id)
        self._apps[descriptor.id] = descriptor
        if descriptor.id not in self._installed:
            self._installed.append(descriptor.id)
        logger.info("App registered: %s (%s)", descriptor.name, descriptor.id)
        return descriptor

    def unregister(self, app_id: str) -> None:
        if self._apps.pop(app_id, None) is None:
            return
        self._installed = [i for i in self._installed if i != app_id]
        logger.info("App unregistered: %s", app_id)

    def load_system_apps(self, descriptors: Iterable[AppDescriptor | Mapping[str, Any]]) -> int:
        count = 0
        for descriptor in descriptors:
            self.register(descriptor)
            count += 1
        logger.info("System apps loaded: %d", count)
        return count

    def launch(self, app_id: str, config: LaunchConfig | Mapping[str, Any] | None = None) -> str:
        """Open a new window for ``app_id`` and return the window id."""
        app = self._apps.get(app_id)
        if app is None:
            logger.error("App %s not found in registry", app_id)
            raise AppNotFoundError(app_id)
        launch = coerce_model(LaunchConfig, config) or LaunchConfig()
        defaults = app.window

        window_config = WindowConfig(
            title=app.name,
            icon=app.icon or None,
            position=launch.position,
            size=defaults.clamp(launch.size or defaults.default_size),
            state=launch.state,
            resizable=defaults.resizable if launch.resizable is None else launch.resizable,
            maximizable=defaults.maximizable if launch.maximizable is None else launch.maximizable,
            movable=launch.movable,
            minimizable=launch.minimizable,
        )
        window_id = self.windows.create(app_id, window_config)
        logger.info("App launched: %s (window: %s)", app.name, window_id)
        return window_id

    def get(self, app_id: str) -> AppDescriptor | None:
        return self._apps.get(app_id)

    def require(self, app_id: str) -> AppDescriptor:
        app = self._apps.get(app_id)
        if app is None:
            raise AppNotFoundError(app_id)
        return app

    def list_apps(self, category: str | None = None) -> list[AppDescriptor]:
        apps = list(self._apps.values())
        if category:
            wanted = category.lower()
            apps = [a for a in apps if a.category.lower() == wanted]
        return apps

    def search(self, query: str) -> list[AppDescriptor]:
        """Case-insensitive substring match over name, description and category."""
        needle = query.lower()
        return [
            app
            for app in self._apps.values()
            if needle in app.name.lower()
            or needle in app.description.lower()
            or needle in app.category.lower()
        ]

    def is_installed(self, app_id: str) -> bool:
        return app_id in self._installed

    def installed_apps(self) -> list[str]:
        return list(self._installed)


def _field(payload: Mapping[str, Any], name: str) -> Any:
    # Accept both python and camelCase spellings.
    camel = name.split("_")[0] + "".join(part.title() for part in name.split("_")[1:])
    return payload.get(name) or payload.get(camel)
