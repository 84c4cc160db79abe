from typing import Literal, Optional
from pydantic import BaseModel, Field

from orbital.schemas.hierarchy import FolderItem, Viewport
from orbital.schemas.layout import LayoutFrame


class DragMessage(BaseModel):
    """Pointer drag event already mapped into engine space"""
    type: Literal["drag_start", "drag", "drag_end"]
    node_id: str
    x: float = Field(0.0, allow_inf_nan=False)
    y: float = Field(0.0, allow_inf_nan=False)


class ToggleMessage(BaseModel):
    """Expand/collapse request (double-click on a node)"""
    type: Literal["toggle"] = "toggle"
    node_id: str


class ViewportMessage(BaseModel):
    """Viewport resize from the client"""
    type: Literal["viewport"] = "viewport"
    width: float = Field(allow_inf_nan=False)
    height: float = Field(allow_inf_nan=False)


class CreateMapRequest(BaseModel):
    """Request body for creating a map"""
    items: list[FolderItem] = Field(default_factory=list)
    viewport: Optional[Viewport] = None
    expanded_ids: list[str] = Field(default_factory=list)


class ToggleRequest(BaseModel):
    node_id: str


class MapResponse(BaseModel):
    """Map id plus its current frame"""
    map_id: str
    frame: LayoutFrame


class ToggleResponse(BaseModel):
    expanded_ids: list[str]
    frame: LayoutFrame


class StatusResponse(BaseModel):
    status: str = "ok"
