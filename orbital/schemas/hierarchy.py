from __future__ import annotations

from typing import Optional, Union
from pydantic import BaseModel, Field


class FolderItem(BaseModel):
    """Folder-like entry from the storage hierarchy"""
    id: Optional[Union[str, int]] = None
    name: str
    size: Optional[float] = None
    selected: bool = True
    parent_id: Optional[Union[str, int]] = None
    children: list[FolderItem] = Field(default_factory=list)


class Viewport(BaseModel):
    """Viewport dimensions in engine space"""
    width: float = Field(allow_inf_nan=False)
    height: float = Field(allow_inf_nan=False)


class HierarchySnapshot(BaseModel):
    """Complete hierarchy input for one map"""
    items: list[FolderItem] = Field(default_factory=list)
