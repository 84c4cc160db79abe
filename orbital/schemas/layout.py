from pydantic import BaseModel, Field


class NodePosition(BaseModel):
    """Position of a visible node for one frame"""
    id: str
    name: str
    x: float
    y: float
    depth: int
    radius: float
    expanded: bool = False
    has_children: bool = False


class EdgeSegment(BaseModel):
    """Parent to child connecting line"""
    id: str
    source: str
    target: str
    x1: float
    y1: float
    x2: float
    y2: float


class OrbitRing(BaseModel):
    """Orbit circle drawn around a parent with visible children"""
    id: str
    cx: float
    cy: float
    r: float


class LayoutFrame(BaseModel):
    """Everything the renderer needs for one tick"""
    map_id: str | None = None
    tick: int = 0
    settled: bool = True
    nodes: list[NodePosition] = Field(default_factory=list)
    edges: list[EdgeSegment] = Field(default_factory=list)
    rings: list[OrbitRing] = Field(default_factory=list)
