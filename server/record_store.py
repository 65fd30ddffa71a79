"""Authoritative per-user desktop records with optimistic locking.

Each user owns exactly one desktop row. Every accepted write increments its
``version`` by one through a conditional ``UPDATE ... WHERE version = :expected``,
so two devices writing from the same starting version cannot both succeed: the
second one gets :class:`~core.errors.VersionConflictError` and nothing is
written. Window writes bump the same counter inside the same transaction as
the window rows, which keeps bulk saves all-or-nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import NotFoundError, VersionConflictError
from server.schemas import DesktopStateRecord, WindowStateRecord, utc_now
from server.sql_store import SQLStore
from world_model.types.desktop import (
    DEFAULT_WALLPAPER,
    DesktopIcon,
    DesktopSettings,
    DesktopSettingsPatch,
    TaskbarConfig,
)
from world_model.types.window import Position, Size, Window
from world_model.window_registry import coerce_model

logger = logging.getLogger("desktop.server.store")

# Every accepted write bumps the version, so a record still at 1 has never been written.
INITIAL_VERSION = 1


def server_defaults() -> dict[str, Any]:
    """Column values for a freshly created or reset desktop."""
    return {
        "wallpaper": DEFAULT_WALLPAPER,
        "theme": "light",
        "taskbar_position": "bottom",
        "taskbar_autohide": False,
        "pinned_apps": [],
        "icons": [],
    }


class ServerRecord(BaseModel):
    """Authoritative copy of one user's desktop and windows."""

    user_id: str
    version: int
    desktop: DesktopSettings
    windows: list[Window] = Field(default_factory=list)
    last_saved: datetime | None = None

    @property
    def pristine(self) -> bool:
        return self.version == INITIAL_VERSION


class ServerRecordStore:
    """Desktop/window persistence over :class:`SQLStore`."""

    def __init__(self, sql_store: SQLStore) -> None:
        self.sql_store = sql_store
        self.sql_store.create_all()

    # -- desktop record --------------------------------------------------

    def get_or_create(self, user_id: str) -> ServerRecord:
        """Return the user's record, creating it with defaults on first use."""
        try:
            with self.sql_store.session() as sess:
                row = self._ensure(sess, user_id)
                return self._to_record(sess, row)
        except IntegrityError:
            # Another writer created the row first.
            return self.get(user_id)

    def get(self, user_id: str) -> ServerRecord:
        with self.sql_store.session() as sess:
            return self._to_record(sess, self._require(sess, user_id))

    def update(
        self,
        user_id: str,
        patch: DesktopSettingsPatch | Mapping[str, Any],
        expected_version: int | None = None,
    ) -> ServerRecord:
        """Apply a partial desktop update guarded by ``expected_version``."""
        values = _patch_values(coerce_model(DesktopSettingsPatch, patch, required=True))
        with self.sql_store.session() as sess:
            if not values:
                row = self._require(sess, user_id)
                if expected_version is not None and row.version != expected_version:
                    raise VersionConflictError(expected_version, row.version)
                return self._to_record(sess, row)
            self._bump(sess, user_id, expected_version, values)
            record = self._to_record(sess, self._require(sess, user_id))
        logger.info("Desktop state updated for %s (version %d)", user_id, record.version)
        return record

    def reset(self, user_id: str, expected_version: int | None = None) -> ServerRecord:
        """Delete every window and restore default settings."""
        with self.sql_store.session() as sess:
            self._ensure(sess, user_id)
            self._bump(sess, user_id, expected_version, server_defaults())
            for row in self._window_rows(sess, user_id):
                sess.delete(row)
            sess.flush()
            record = self._to_record(sess, self._require(sess, user_id))
        logger.info("Desktop reset to defaults for %s", user_id)
        return record

    def delete(self, user_id: str) -> None:
        """Remove the desktop record; its windows go with it."""
        with self.sql_store.session() as sess:
            row = self._require(sess, user_id)
            sess.delete(row)
        logger.info("Desktop state deleted for %s", user_id)

    # -- windows ---------------------------------------------------------

    def list_windows(self, user_id: str) -> tuple[int, list[Window]]:
        """Return the record version and windows ordered back to front."""
        with self.sql_store.session() as sess:
            row = self._ensure(sess, user_id)
            windows = [_window_from_row(w) for w in self._window_rows(sess, user_id)]
            return row.version, windows

    def save_window(
        self,
        user_id: str,
        window: Window | Mapping[str, Any],
        expected_version: int | None = None,
    ) -> tuple[int, Window]:
        """Insert or update one window keyed by ``(user_id, window id)``."""
        parsed = coerce_model(Window, window, required=True)
        with self.sql_store.session() as sess:
            desktop = self._ensure(sess, user_id)
            desktop_id = desktop.id
            version = self._bump(sess, user_id, expected_version, {})
            row = sess.scalars(
                select(WindowStateRecord).where(
                    WindowStateRecord.user_id == user_id,
                    WindowStateRecord.window_id == parsed.id,
                )
            ).first()
            if row is None:
                row = WindowStateRecord(user_id=user_id, desktop_state_id=desktop_id, window_id=parsed.id)
                sess.add(row)
            _apply_window(row, parsed)
            sess.flush()
            saved = _window_from_row(row)
        logger.info("Window %s saved for %s", parsed.id, user_id)
        return version, saved

    def replace_windows(
        self,
        user_id: str,
        windows: Iterable[Window | Mapping[str, Any]],
        expected_version: int | None = None,
    ) -> ServerRecord:
        """Make the stored window list match ``windows`` in one transaction."""
        parsed: dict[str, Window] = {}
        for item in windows:
            window = coerce_model(Window, item, required=True)
            parsed[window.id] = window

        with self.sql_store.session() as sess:
            desktop = self._ensure(sess, user_id)
            desktop_id = desktop.id
            self._bump(sess, user_id, expected_version, {})
            existing = {row.window_id: row for row in self._window_rows(sess, user_id)}
            for window_id, window in parsed.items():
                row = existing.pop(window_id, None)
                if row is None:
                    row = WindowStateRecord(
                        user_id=user_id, desktop_state_id=desktop_id, window_id=window_id
                    )
                    sess.add(row)
                _apply_window(row, window)
            for stale in existing.values():
                sess.delete(stale)
            sess.flush()
            record = self._to_record(sess, self._require(sess, user_id))
        logger.info(
            "Bulk window save completed for %s (%d windows, version %d)",
            user_id,
            len(parsed),
            record.version,
        )
        return record

    def delete_window(
        self, user_id: str, window_id: str, expected_version: int | None = None
    ) -> int:
        """Delete one window and return the new record version."""
        with self.sql_store.session() as sess:
            row = self._find_window(sess, user_id, window_id)
            if row is None:
                raise NotFoundError("Window state not found")
            version = self._bump(sess, user_id, expected_version, {})
            sess.delete(row)
        logger.info("Window %s deleted for %s", window_id, user_id)
        return version

    def close_all_windows(
        self, user_id: str, expected_version: int | None = None
    ) -> tuple[int, int]:
        """Delete every window; return ``(version, count)``."""
        with self.sql_store.session() as sess:
            self._require(sess, user_id)
            version = self._bump(sess, user_id, expected_version, {})
            rows = self._window_rows(sess, user_id)
            for row in rows:
                sess.delete(row)
        logger.info("All windows closed for %s (%d)", user_id, len(rows))
        return version, len(rows)

    def bring_to_front(self, user_id: str, window_id: str) -> tuple[int, Window]:
        """Focus a stored window and stack it above every other one."""
        with self.sql_store.session() as sess:
            target = self._find_window(sess, user_id, window_id)
            if target is None:
                raise NotFoundError("Window state not found")
            version = self._bump(sess, user_id, None, {})
            rows = self._window_rows(sess, user_id)
            top = max(row.z_index for row in rows)
            for row in rows:
                row.focused = row.window_id == window_id
            if target.z_index != top or sum(1 for r in rows if r.z_index == top) > 1:
                target.z_index = top + 1
            sess.flush()
            return version, _window_from_row(target)

    # -- reporting -------------------------------------------------------

    def statistics(self) -> dict[str, Any]:
        with self.sql_store.session() as sess:
            total = sess.scalar(select(func.count()).select_from(DesktopStateRecord)) or 0
            by_theme = dict(
                sess.execute(
                    select(DesktopStateRecord.theme, func.count()).group_by(DesktopStateRecord.theme)
                ).all()
            )
            window_count = sess.scalar(select(func.count()).select_from(WindowStateRecord)) or 0
        return {
            "totalDesktops": total,
            "byTheme": {"light": by_theme.get("light", 0), "dark": by_theme.get("dark", 0)},
            "averageWindows": (window_count / total) if total else 0.0,
        }

    # -- internals -------------------------------------------------------

    @staticmethod
    def _find(sess: Session, user_id: str) -> DesktopStateRecord | None:
        return sess.scalars(
            select(DesktopStateRecord).where(DesktopStateRecord.user_id == user_id)
        ).first()

    def _require(self, sess: Session, user_id: str) -> DesktopStateRecord:
        row = self._find(sess, user_id)
        if row is None:
            raise NotFoundError("Desktop state not found")
        return row

    def _ensure(self, sess: Session, user_id: str) -> DesktopStateRecord:
        row = self._find(sess, user_id)
        if row is None:
            row = DesktopStateRecord(user_id=user_id, version=INITIAL_VERSION, **server_defaults())
            sess.add(row)
            sess.flush()
            logger.info("Desktop state created for %s", user_id)
        return row

    @staticmethod
    def _find_window(sess: Session, user_id: str, window_id: str) -> WindowStateRecord | None:
        return sess.scalars(
            select(WindowStateRecord).where(
                WindowStateRecord.user_id == user_id,
                WindowStateRecord.window_id == window_id,
            )
        ).first()

    @staticmethod
    def _window_rows(sess: Session, user_id: str) -> list[WindowStateRecord]:
        return list(
            sess.scalars(
                select(WindowStateRecord)
                .where(WindowStateRecord.user_id == user_id)
                .order_by(
                    WindowStateRecord.z_index.asc(),
                    WindowStateRecord.created_at.asc(),
                    WindowStateRecord.id.asc(),
                )
            )
        )

    def _bump(
        self,
        sess: Session,
        user_id: str,
        expected_version: int | None,
        values: dict[str, Any],
    ) -> int:
        """Conditionally increment the version; return the new value."""
        stmt = update(DesktopStateRecord).where(DesktopStateRecord.user_id == user_id)
        if expected_version is not None:
            stmt = stmt.where(DesktopStateRecord.version == expected_version)
        stmt = stmt.values(
            version=DesktopStateRecord.version + 1,
            updated_at=utc_now(),
            **values,
        ).execution_options(synchronize_session=False)
        result = sess.execute(stmt)
        if result.rowcount == 0:
            existing = self._find(sess, user_id)
            if existing is None:
                raise NotFoundError("Desktop state not found")
            logger.info(
                "Version conflict for %s: expected %s, stored %s",
                user_id,
                expected_version,
                existing.version,
            )
            raise VersionConflictError(expected_version, existing.version)
        sess.expire_all()
        return self._require(sess, user_id).version

    def _to_record(self, sess: Session, row: DesktopStateRecord) -> ServerRecord:
        windows = [_window_from_row(w) for w in self._window_rows(sess, row.user_id)]
        return ServerRecord(
            user_id=row.user_id,
            version=row.version,
            desktop=_desktop_from_row(row),
            windows=windows,
            last_saved=row.updated_at,
        )


def _patch_values(patch: DesktopSettingsPatch) -> dict[str, Any]:
    values: dict[str, Any] = {}
    if patch.wallpaper is not None:
        values["wallpaper"] = patch.wallpaper
    if patch.theme is not None:
        values["theme"] = patch.theme
    if patch.icons is not None:
        values["icons"] = [icon.to_json_dict() for icon in patch.icons]
    if patch.taskbar is not None:
        if patch.taskbar.position is not None:
            values["taskbar_position"] = patch.taskbar.position
        if patch.taskbar.autohide is not None:
            values["taskbar_autohide"] = patch.taskbar.autohide
        if patch.taskbar.pinned_apps is not None:
            values["pinned_apps"] = list(patch.taskbar.pinned_apps)
    return values


def _desktop_from_row(row: DesktopStateRecord) -> DesktopSettings:
    return DesktopSettings(
        wallpaper=row.wallpaper,
        theme=row.theme,
        icons=[DesktopIcon.model_validate(icon) for icon in row.icons or []],
        taskbar=TaskbarConfig(
            position=row.taskbar_position,
            autohide=row.taskbar_autohide,
            pinned_apps=list(row.pinned_apps or []),
        ),
    )


def _apply_window(row: WindowStateRecord, window: Window) -> None:
    row.app_id = window.app_id
    row.title = window.title
    row.icon = window.icon
    row.position_x = window.position.x
    row.position_y = window.position.y
    row.width = window.size.width
    row.height = window.size.height
    row.state = window.state
    row.z_index = window.z_index
    row.focused = window.focused
    row.resizable = window.resizable
    row.movable = window.movable
    row.minimizable = window.minimizable
    row.maximizable = window.maximizable


def _window_from_row(row: WindowStateRecord) -> Window:
    return Window(
        id=row.window_id,
        app_id=row.app_id,
        title=row.title,
        icon=row.icon,
        position=Position(x=row.position_x, y=row.position_y),
        size=Size(width=row.width, height=row.height),
        state=row.state,
        z_index=row.z_index,
        focused=row.focused,
        resizable=row.resizable,
        movable=row.movable,
        minimizable=row.minimizable,
        maximizable=row.maximizable,
    )
