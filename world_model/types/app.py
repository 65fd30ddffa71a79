"""Application descriptor and launch config models."""

from __future__ import annotations

from pydantic import Field

from world_model.types.base import CamelModel
from world_model.types.window import Position, Size, WindowStateType


class AppWindowConfig(CamelModel):
    """Window defaults for every instance of an application."""

    default_size: Size = Field(default_factory=lambda: Size(width=800, height=600))
    min_size: Size | None = None
    max_size: Size | None = None
    resizable: bool = True
    maximizable: bool = True

    def clamp(self, size: Size) -> Size:
        width, height = size.width, size.height
        if self.min_size is not None:
            width = max(width, self.min_size.width)
            height = max(height, self.min_size.height)
        if self.max_size is not None:
            width = min(width, self.max_size.width)
            height = min(height, self.max_size.height)
        return Size(width=width, height=height)


class AppDescriptor(CamelModel):
    """Registered once per application type."""

    id: str
    name: str
    entry_point: str
    version: str = "1.0.0"
    description: str = ""
    author: str = ""
    icon: str = ""
    category: str = "Utilities"
    permissions: list[str] = Field(default_factory=list)
    window: AppWindowConfig = Field(default_factory=AppWindowConfig)


class LaunchConfig(CamelModel):
    """Per-launch overrides of an application's window defaults."""

    position: Position | None = None
    size: Size | None = None
    state: WindowStateType | None = None
    resizable: bool | None = None
    movable: bool | None = None
    minimizable: bool | None = None
    maximizable: bool | None = None
