"""
Orbit layout planning service.

Assigns every visible node a target position on an orbit around its
parent's current position. Orbit radius grows with depth and with the
number of visible children; children are spread evenly by angle.

The planner is a pure function: the same tree, expansion state and
positions always give the same plan.
"""

import math
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, List, Mapping, Optional, Tuple

from orbital.config import LayoutConfig
from orbital.services.hierarchy import NormalizedTree
from orbital.services.visibility import VisibleSet

Point = Tuple[float, float]


@dataclass
class NodePlan:
    """Planned placement of one visible node"""
    target_x: float
    target_y: float
    orbit_radius: float = 0.0
    target_angle: float = 0.0
    child_orbit_radius: float = 0.0


@dataclass
class OrbitPlan:
    nodes: Dict[str, NodePlan] = field(default_factory=dict)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def get(self, node_id: str) -> Optional[NodePlan]:
        return self.nodes.get(node_id)


def node_radius(depth: int, config: LayoutConfig) -> float:
    """
    Visual radius of a node at a given depth.

    Formula: max(min_node_radius, max_node_radius - depth × node_radius_step)
    """
    return max(config.min_node_radius, config.max_node_radius - depth * config.node_radius_step)


def normalize_angle(angle: float) -> float:
    """Wrap an angle into [-π, π]"""
    return math.remainder(angle, 2 * math.pi)


def calculate_child_angles(
    child_count: int,
    inbound_angle: Optional[float],
    config: LayoutConfig
) -> Tuple[List[float], float]:
    """
    Calculate orbit angles for a parent's children.

    The root's children are spread around the full circle starting at
    angle_offset. Other parents continue their own inbound spoke: in
    "orbit" mode the full circle is split into child_count + 1 slots and
    the slot pointing back at the grandparent is left empty; in "fan" mode
    children share a bounded arc centered on the inbound angle. Either way
    a single child lands exactly on the inbound angle.

    Args:
        child_count: Number of visible children
        inbound_angle: Parent's own orbit angle (None for the root)
        config: Layout configuration

    Returns:
        (angles, slot): Child angles in order, and the angular gap between
        adjacent children
    """
    if child_count <= 0:
        return [], 2 * math.pi

    if inbound_angle is None:
        slot = 2 * math.pi / child_count
        angles = [config.angle_offset + i * slot for i in range(child_count)]
    elif config.angle_mode == "fan":
        slot = config.fan_arc / child_count
        start = inbound_angle - config.fan_arc / 2
        angles = [start + (i + 0.5) * slot for i in range(child_count)]
    else:
        slot = 2 * math.pi / (child_count + 1)
        angles = [inbound_angle + math.pi + (i + 1) * slot for i in range(child_count)]

    return [normalize_angle(angle) for angle in angles], slot


def calculate_orbit_radius(
    depth: int,
    child_count: int,
    expanded: bool,
    config: LayoutConfig,
    slot: float = 2 * math.pi,
    padding: float = 0.0
) -> float:
    """
    Calculate the orbit radius a parent uses for its children.

    Formula: (base + depth × level_spacing) × expansion_multiplier (if expanded)
             + min(child_bonus_cap, child_count × child_bonus_per_child)

    The result is raised when needed so that neighbouring children at this
    radius, and the parent itself, do not overlap.

    Args:
        depth: Parent depth (root = 0)
        child_count: Number of visible children
        expanded: Whether the parent is expanded (or is the root)
        config: Layout configuration
        slot: Angular gap between adjacent children
        padding: Extra clearance between node edges

    Returns:
        float: Orbit radius (0.0 when there are no children)
    """
    if child_count <= 0:
        return 0.0

    radius = config.base_orbit_radius + depth * config.level_spacing
    if expanded:
        radius *= config.expansion_multiplier
    radius += min(config.child_bonus_cap, child_count * config.child_bonus_per_child)

    child_size = node_radius(depth + 1, config)
    radius = max(radius, node_radius(depth, config) + child_size + padding)

    if child_count >= 2 and slot < 2 * math.pi:
        # Chord between adjacent children must fit two node radii
        half_sine = math.sin(min(slot, math.pi) / 2)
        if half_sine > 0:
            radius = max(radius, (2 * child_size + padding) / (2 * half_sine))

    return radius


def orbit_point(origin: Point, radius: float, angle: float) -> Point:
    return (origin[0] + radius * math.cos(angle), origin[1] + radius * math.sin(angle))


def plan_orbits(
    tree: NormalizedTree,
    visible: VisibleSet,
    expanded_ids: AbstractSet[str],
    anchor: Point,
    positions: Optional[Mapping[str, Point]] = None,
    config: Optional[LayoutConfig] = None,
    padding: float = 0.0
) -> OrbitPlan:
    """
    Plan target positions for every visible node, depth-first from the root.

    Args:
        tree: Normalized hierarchy
        visible: Current visible set
        expanded_ids: Expanded node ids
        anchor: Where the root is pinned
        positions: Current positions by node id; a parent without one is
            treated as sitting on its own target (cold start); the root
            always plans around the anchor
        config: Layout configuration
        padding: Collision padding used for radius selection

    Returns:
        OrbitPlan: Per-node targets, orbit radii and angles
    """
    config = config or LayoutConfig()
    positions = positions or {}
    plan = OrbitPlan()
    if tree.root_id is None or tree.root_id not in visible:
        return plan

    plan.nodes[tree.root_id] = NodePlan(target_x=anchor[0], target_y=anchor[1])

    stack: List[Tuple[str, Optional[float]]] = [(tree.root_id, None)]
    while stack:
        parent_id, inbound_angle = stack.pop()
        children = visible.children.get(parent_id, [])
        if not children:
            continue

        parent = tree.nodes[parent_id]
        parent_plan = plan.nodes[parent_id]
        if parent.is_root:
            origin = (parent_plan.target_x, parent_plan.target_y)
        else:
            origin = positions.get(parent_id, (parent_plan.target_x, parent_plan.target_y))

        angles, slot = calculate_child_angles(len(children), inbound_angle, config)
        radius = calculate_orbit_radius(
            depth=parent.depth,
            child_count=len(children),
            expanded=parent_id in expanded_ids or parent.is_root,
            config=config,
            slot=slot,
            padding=padding
        )
        parent_plan.child_orbit_radius = radius

        for child_id, angle in zip(children, angles):
            target_x, target_y = orbit_point(origin, radius, angle)
            plan.nodes[child_id] = NodePlan(
                target_x=target_x,
                target_y=target_y,
                orbit_radius=radius,
                target_angle=angle
            )

        stack.extend((child_id, angle) for child_id, angle in reversed(list(zip(children, angles))))

    return plan
