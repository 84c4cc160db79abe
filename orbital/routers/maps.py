from fastapi import APIRouter, HTTPException

from orbital.schemas.events import CreateMapRequest, MapResponse, StatusResponse, ToggleRequest, ToggleResponse
from orbital.schemas.hierarchy import HierarchySnapshot, Viewport
from orbital.schemas.layout import LayoutFrame
from orbital.services.engine import OrbitalEngine
from orbital.services.maps import map_service
from orbital.websocket import manager

router = APIRouter(prefix="/api/maps", tags=["maps"])


def get_engine_or_404(map_id: str) -> OrbitalEngine:
    engine = map_service.get_map(map_id)
    if engine is None:
        raise HTTPException(status_code=404, detail="Map not found")
    return engine


@router.post("", response_model=MapResponse)
async def create_map(request: CreateMapRequest):
    """
    Create a map from a hierarchy snapshot and return its first frame
    """
    engine = map_service.create_map(
        request.items,
        viewport=request.viewport,
        expanded_ids=request.expanded_ids,
        on_frame=manager.broadcast_frame
    )
    return MapResponse(map_id=engine.map_id, frame=engine.frame())


@router.get("/{map_id}", response_model=LayoutFrame)
async def get_frame(map_id: str):
    """
    Current positions of every visible node
    """
    return get_engine_or_404(map_id).frame()


@router.put("/{map_id}/hierarchy", response_model=LayoutFrame)
async def replace_hierarchy(map_id: str, snapshot: HierarchySnapshot):
    """
    Replace the hierarchy; persisting nodes keep their positions
    """
    engine = get_engine_or_404(map_id)
    engine.set_hierarchy(snapshot.items)
    return engine.frame()


@router.put("/{map_id}/viewport", response_model=LayoutFrame)
async def update_viewport(map_id: str, viewport: Viewport):
    engine = get_engine_or_404(map_id)
    engine.set_viewport(viewport.width, viewport.height)
    return engine.frame()


@router.post("/{map_id}/toggle", response_model=ToggleResponse)
async def toggle_node(map_id: str, request: ToggleRequest):
    """
    Expand or collapse a node
    """
    engine = get_engine_or_404(map_id)
    expanded = engine.toggle(request.node_id)
    return ToggleResponse(expanded_ids=sorted(expanded), frame=engine.frame())


@router.post("/{map_id}/recenter", response_model=LayoutFrame)
async def recenter_map(map_id: str):
    engine = get_engine_or_404(map_id)
    engine.recenter()
    return engine.frame()


@router.delete("/{map_id}", response_model=StatusResponse)
async def delete_map(map_id: str):
    """
    Detach the map's engine and forget it
    """
    if not map_service.remove_map(map_id):
        raise HTTPException(status_code=404, detail="Map not found")
    return StatusResponse(status="ok")
