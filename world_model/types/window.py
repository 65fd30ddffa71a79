"""Window record and creation config models."""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import Field

from world_model.types.base import CamelModel

WindowStateType = Literal["normal", "minimized", "maximized", "fullscreen"]
WINDOW_STATES: tuple[str, ...] = ("normal", "minimized", "maximized", "fullscreen")

DEFAULT_WINDOW_WIDTH = 800
DEFAULT_WINDOW_HEIGHT = 600


def new_window_id() -> str:
    """Opaque, never-reused window identifier."""
    return f"window-{uuid.uuid4().hex}"


class Position(CamelModel):
    """Top-left corner in desktop coordinates."""

    x: int
    y: int


class Size(CamelModel):
    """Window extent in pixels."""

    width: int = Field(gt=0)
    height: int = Field(gt=0)


class Window(CamelModel):
    """One open application instance."""

    id: str = Field(default_factory=new_window_id)
    app_id: str
    title: str = "Untitled"
    icon: str | None = None
    position: Position
    size: Size = Field(
        default_factory=lambda: Size(width=DEFAULT_WINDOW_WIDTH, height=DEFAULT_WINDOW_HEIGHT)
    )
    state: WindowStateType = "normal"
    z_index: int = 0
    focused: bool = False
    resizable: bool = True
    movable: bool = True
    minimizable: bool = True
    maximizable: bool = True


class WindowConfig(CamelModel):
    """Optional fields accepted when creating a window.

    Every field left as ``None`` falls back to its default: ``title`` to
    ``"Untitled"``, ``position`` to the next cascade slot, ``size`` to 800x600,
    ``state`` to ``"normal"`` and each capability flag to ``True``.
    """

    title: str | None = None
    icon: str | None = None
    position: Position | None = None
    size: Size | None = None
    state: WindowStateType | None = None
    resizable: bool | None = None
    movable: bool | None = None
    minimizable: bool | None = None
    maximizable: bool | None = None
