"""SQLAlchemy schemas for the authoritative desktop records."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    """Return UTC datetime for default timestamps."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base."""


class DesktopStateRecord(Base):
    """One row per user; ``version`` is the optimistic-lock counter."""

    __tablename__ = "desktop_states"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    version: Mapped[int] = mapped_column(Integer, default=1)
    wallpaper: Mapped[str] = mapped_column(String(500))
    theme: Mapped[str] = mapped_column(String(20), default="light")
    taskbar_position: Mapped[str] = mapped_column(String(20), default="bottom")
    taskbar_autohide: Mapped[bool] = mapped_column(Boolean, default=False)
    pinned_apps: Mapped[list[str]] = mapped_column(JSON, default=list)
    icons: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    windows: Mapped[list[WindowStateRecord]] = relationship(
        back_populates="desktop",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class WindowStateRecord(Base):
    """Persisted geometry and display state of one open window."""

    __tablename__ = "window_states"
    __table_args__ = (UniqueConstraint("user_id", "window_id", name="uq_window_states_user_window"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    window_id: Mapped[str] = mapped_column(String(64), index=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    desktop_state_id: Mapped[int] = mapped_column(
        ForeignKey("desktop_states.id", ondelete="CASCADE"), index=True
    )
    app_id: Mapped[str] = mapped_column(String(50), index=True)
    title: Mapped[str] = mapped_column(String(255))
    icon: Mapped[str | None] = mapped_column(String(255), nullable=True)
    position_x: Mapped[int] = mapped_column(Integer)
    position_y: Mapped[int] = mapped_column(Integer)
    width: Mapped[int] = mapped_column(Integer)
    height: Mapped[int] = mapped_column(Integer)
    state: Mapped[str] = mapped_column(String(20), default="normal")
    z_index: Mapped[int] = mapped_column(Integer, default=0)
    focused: Mapped[bool] = mapped_column(Boolean, default=False)
    resizable: Mapped[bool] = mapped_column(Boolean, default=True)
    movable: Mapped[bool] = mapped_column(Boolean, default=True)
    minimizable: Mapped[bool] = mapped_column(Boolean, default=True)
    maximizable: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    desktop: Mapped[DesktopStateRecord] = relationship(back_populates="windows")
