"""
Force model for the orbital simulation.

Each force is a pure function (state, context) -> (ax, ay). The integrator
sums them once per node per tick, in the order of DEFAULT_FORCES. Pinned
nodes never receive force. Collision separation is a positional
constraint rather than a force and lives in resolve_collisions().
"""

import math
from typing import TYPE_CHECKING, Callable, Dict, List, Tuple

if TYPE_CHECKING:
    from orbital.services.simulation import NodeState, SimulationContext

Vector = Tuple[float, float]
Force = Callable[["NodeState", "SimulationContext"], Vector]

ZERO: Vector = (0.0, 0.0)


def separation(dx: float, dy: float, context: "SimulationContext") -> Tuple[float, float, float]:
    """
    Normalize a separation vector.

    Coincident points get an epsilon distance and a random direction from
    the context's seeded generator, so no force divides by zero.

    Returns:
        (ux, uy, distance): Unit vector and distance
    """
    distance = math.hypot(dx, dy)
    if distance < context.physics.epsilon:
        angle = context.rng.uniform(0.0, 2 * math.pi)
        return math.cos(angle), math.sin(angle), context.physics.epsilon
    return dx / distance, dy / distance, distance


def orbit_restoring_force(state: "NodeState", context: "SimulationContext") -> Vector:
    """Spring toward the planned target position"""
    if state.parent_id is None:
        return ZERO
    k = context.physics.orbit_strength
    return (state.target_x - state.x) * k, (state.target_y - state.y) * k


def repulsion_force(state: "NodeState", context: "SimulationContext") -> Vector:
    """
    Inverse-distance repulsion from every unrelated node within range.

    Shallow nodes push harder: a source at depth d contributes
    strength / (1 + 0.5 × d) / distance. Overlapping pairs count as
    touching; resolve_collisions() separates them.
    """
    strength = context.physics.repulsion_strength
    max_distance = context.physics.repulsion_distance_max
    ax = ay = 0.0

    for other in context.states.values():
        if other is state or other.id == state.parent_id or other.parent_id == state.id:
            continue
        dx = state.x - other.x
        dy = state.y - other.y
        if abs(dx) > max_distance or abs(dy) > max_distance:
            continue
        ux, uy, distance = separation(dx, dy, context)
        if distance > max_distance:
            continue
        distance = max(distance, state.radius + other.radius)
        magnitude = strength / (1.0 + 0.5 * other.depth) / distance
        ax += ux * magnitude
        ay += uy * magnitude

    return ax, ay


def link_spring_force(state: "NodeState", context: "SimulationContext") -> Vector:
    """Spring along the parent edge toward a length of orbit_radius, independent of angle"""
    parent = context.states.get(state.parent_id) if state.parent_id is not None else None
    if parent is None:
        return ZERO
    ux, uy, distance = separation(state.x - parent.x, state.y - parent.y, context)
    stretch = distance - state.orbit_radius
    k = context.physics.link_strength
    return -ux * stretch * k, -uy * stretch * k


DEFAULT_FORCES: List[Force] = [
    orbit_restoring_force,
    repulsion_force,
    link_spring_force,
]


def resolve_collisions(context: "SimulationContext") -> Dict[str, Vector]:
    """
    Push overlapping node pairs apart.

    Runs collision_iterations passes over all pairs. A pinned node never
    moves; its partner takes the whole correction.

    Returns:
        dict: Total displacement applied to each moved node
    """
    padding = context.physics.collision_padding
    states = list(context.states.values())
    moved: Dict[str, List[float]] = {}

    for _ in range(context.physics.collision_iterations):
        overlapping = False
        for i, a in enumerate(states):
            for b in states[i + 1:]:
                if a.pinned and b.pinned:
                    continue
                min_distance = a.radius + b.radius + padding
                dx = b.x - a.x
                dy = b.y - a.y
                if abs(dx) >= min_distance or abs(dy) >= min_distance:
                    continue
                ux, uy, distance = separation(dx, dy, context)
                overlap = min_distance - distance
                if overlap <= 0:
                    continue
                overlapping = True

                if a.pinned:
                    shares = ((a, 0.0), (b, 1.0))
                elif b.pinned:
                    shares = ((a, -1.0), (b, 0.0))
                else:
                    shares = ((a, -0.5), (b, 0.5))

                for node, share in shares:
                    if share == 0.0:
                        continue
                    shift_x = ux * overlap * share
                    shift_y = uy * overlap * share
                    node.x += shift_x
                    node.y += shift_y
                    total = moved.setdefault(node.id, [0.0, 0.0])
                    total[0] += shift_x
                    total[1] += shift_y
        if not overlapping:
            break

    return {node_id: (total[0], total[1]) for node_id, total in moved.items()}
