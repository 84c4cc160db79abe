"""
Force integration service.

All simulation state lives in a SimulationContext owned by one map; there
is no module-level mutable state, so independent maps never interfere.

One step():
1. Re-derives every target from its parent's current position
2. Sums the force functions for each free node
3. Integrates velocity (with decay) and position
4. Separates colliding nodes, folding the correction back into velocity
5. Returns the kinetic energy used for the settled check
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from orbital.config import Config
from orbital.services.forces import DEFAULT_FORCES, Force, resolve_collisions
from orbital.services.hierarchy import NormalizedTree
from orbital.services.planner import OrbitPlan, node_radius, orbit_point
from orbital.services.visibility import VisibleSet

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
Bounds = Tuple[float, float, float, float]


@dataclass
class NodeState:
    """Live simulation state of one visible node"""
    id: str
    depth: int
    parent_id: Optional[str]
    radius: float
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    target_x: float = 0.0
    target_y: float = 0.0
    orbit_radius: float = 0.0
    target_angle: float = 0.0
    pinned: bool = False

    @property
    def position(self) -> Point:
        return self.x, self.y


class SimulationContext:
    """
    Mutable simulation state for a single map.

    Attributes:
        states: Visible node states keyed by id, parents before children
        edges: Visible parent->child pairs
        anchor: Where the root is pinned
        anchor_moved: True once the user has dragged the root
        dormant: Offsets from parent of hidden nodes kept for re-expansion
        energy: Kinetic energy after the last step (inf when perturbed)
    """

    def __init__(self, config: Optional[Config] = None, forces: Optional[List[Force]] = None):
        self.config = config or Config()
        self.layout = self.config.layout
        self.physics = self.config.physics
        self.forces: List[Force] = list(forces if forces is not None else DEFAULT_FORCES)
        self.rng = random.Random(self.physics.random_seed)
        self.states: Dict[str, NodeState] = {}
        self.edges: List[Tuple[str, str]] = []
        self.root_id: Optional[str] = None
        self.anchor: Point = (0.0, 0.0)
        self.anchor_moved = False
        self.dormant: Dict[str, Point] = {}
        self.tick = 0
        self.energy = math.inf

    def positions(self) -> Dict[str, Point]:
        return {node_id: state.position for node_id, state in self.states.items()}

    def perturb(self):
        """Mark the system as out of equilibrium"""
        self.energy = math.inf

    def is_settled(self) -> bool:
        return self.energy < self.physics.energy_threshold

    def clear(self):
        self.states.clear()
        self.edges = []
        self.dormant.clear()
        self.root_id = None
        self.energy = math.inf


def kinetic_energy(context: SimulationContext) -> float:
    """Sum of squared velocities over free nodes"""
    return sum(
        state.vx * state.vx + state.vy * state.vy
        for state in context.states.values()
        if not state.pinned
    )


def refresh_targets(context: SimulationContext):
    """
    Recompute targets from parents' current positions.

    States are ordered parents-first, so a chain of moved ancestors is
    followed within a single pass.
    """
    for state in context.states.values():
        if state.parent_id is None:
            state.target_x, state.target_y = context.anchor
            state.x, state.y = context.anchor
            state.vx = state.vy = 0.0
            continue
        parent = context.states.get(state.parent_id)
        if parent is None:
            continue
        state.target_x, state.target_y = orbit_point(parent.position, state.orbit_radius, state.target_angle)


def _sanitize(context: SimulationContext):
    """Reset any node with a non-finite position or velocity to its target, at rest"""
    for state in context.states.values():
        if not all(math.isfinite(value) for value in (state.x, state.y, state.vx, state.vy)):
            logger.warning(f"Non-finite state for {state.id!r}; resetting to target")
            if math.isfinite(state.target_x) and math.isfinite(state.target_y):
                state.x, state.y = state.target_x, state.target_y
            else:
                state.x, state.y = context.anchor
            state.vx = state.vy = 0.0


def step(context: SimulationContext, dt: Optional[float] = None) -> float:
    """
    Advance the simulation by one tick.

    Args:
        context: Simulation context to mutate
        dt: Time step (defaults to physics.dt)

    Returns:
        float: Kinetic energy after the step
    """
    if not context.states:
        context.energy = 0.0
        return 0.0

    dt = context.physics.dt if dt is None else dt
    retain = 1.0 - context.physics.velocity_decay

    _sanitize(context)
    refresh_targets(context)

    accelerations: Dict[str, Tuple[float, float]] = {}
    for state in context.states.values():
        if state.pinned:
            continue
        ax = ay = 0.0
        for force in context.forces:
            fx, fy = force(state, context)
            ax += fx
            ay += fy
        accelerations[state.id] = (ax, ay)

    for node_id, (ax, ay) in accelerations.items():
        state = context.states[node_id]
        state.vx = (state.vx + ax * dt) * retain
        state.vy = (state.vy + ay * dt) * retain
        state.x += state.vx * dt
        state.y += state.vy * dt

    if dt > 0:
        for node_id, (shift_x, shift_y) in resolve_collisions(context).items():
            state = context.states[node_id]
            state.vx += shift_x / dt
            state.vy += shift_y / dt

    _sanitize(context)

    context.tick += 1
    context.energy = kinetic_energy(context)
    return context.energy


def _clamp(point: Point, bounds: Optional[Bounds]) -> Point:
    if bounds is None:
        return point
    min_x, min_y, max_x, max_y = bounds
    return min(max(point[0], min_x), max_x), min(max(point[1], min_y), max_y)


def reconcile(
    context: SimulationContext,
    tree: NormalizedTree,
    visible: VisibleSet,
    plan: OrbitPlan,
    bounds: Optional[Bounds] = None
):
    """
    Bring the simulation state in line with a new visible set and plan.

    - Persisting nodes keep position and velocity; only their plan changes
    - Nodes gone from the hierarchy are discarded
    - Nodes still in the hierarchy but hidden are parked in the dormant
      cache (when retain_collapsed_state is on) as an offset from their parent
    - Re-shown dormant nodes reappear at that offset from the parent's
      current position, at rest
    - Brand-new nodes spawn next to their parent's current position

    Args:
        context: Simulation context to mutate
        tree: Normalized hierarchy
        visible: New visible set
        plan: Plan for the visible set
        bounds: (min_x, min_y, max_x, max_y) used to clamp spawn positions
    """
    previous = context.states
    retain = context.layout.retain_collapsed_state

    for node_id, state in previous.items():
        if node_id in visible:
            continue
        if retain and node_id in tree and state.parent_id is not None:
            parent = previous.get(state.parent_id)
            origin = parent.position if parent else context.anchor
            context.dormant[node_id] = (state.x - origin[0], state.y - origin[1])

    for node_id in list(context.dormant):
        if node_id not in tree or not retain:
            del context.dormant[node_id]

    states: Dict[str, NodeState] = {}
    spawned = restored = 0

    for node_id in visible.nodes:
        node = tree.nodes[node_id]
        node_plan = plan.get(node_id)
        if node_plan is None:
            continue

        state = previous.get(node_id)
        if state is None:
            parent = states.get(node.parent_id) if node.parent_id is not None else None
            if parent is None:
                start = context.anchor
            elif node_id in context.dormant:
                offset = context.dormant.pop(node_id)
                start = (parent.x + offset[0], parent.y + offset[1])
                restored += 1
            else:
                # Emerge just outside the parent's edge, heading for the target
                clearance = parent.radius + node_radius(node.depth, context.layout) + context.physics.collision_padding
                distance = min(clearance, node_plan.orbit_radius)
                start = _clamp(orbit_point(parent.position, distance, node_plan.target_angle), bounds)
                spawned += 1
            state = NodeState(
                id=node_id,
                depth=node.depth,
                parent_id=node.parent_id,
                radius=node_radius(node.depth, context.layout),
                x=start[0],
                y=start[1]
            )
        else:
            context.dormant.pop(node_id, None)
            if state.parent_id is None and node.parent_id is not None:
                # Former root demoted by a new hierarchy
                state.pinned = False

        state.depth = node.depth
        state.parent_id = node.parent_id
        state.radius = node_radius(node.depth, context.layout)
        state.target_x = node_plan.target_x
        state.target_y = node_plan.target_y
        state.orbit_radius = node_plan.orbit_radius
        state.target_angle = node_plan.target_angle
        if node.parent_id is None:
            state.pinned = True
            state.x, state.y = context.anchor
            state.vx = state.vy = 0.0
        states[node_id] = state

    dropped = len([node_id for node_id in previous if node_id not in states])
    context.states = states
    context.edges = list(visible.edges)
    context.root_id = visible.nodes[0] if visible.nodes else None
    context.perturb()

    logger.debug(
        f"Reconciled {len(states)} nodes: {spawned} spawned, {restored} restored, {dropped} removed, "
        f"{len(context.dormant)} dormant"
    )
