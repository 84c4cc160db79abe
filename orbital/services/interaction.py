"""
Drag interaction controller.

Each node is either free or dragging. While dragging, the node is pinned
to the pointer: the integrator neither applies forces to it nor lets
collisions move it, but it still repels and displaces its neighbours.
On release its velocity is zeroed and it relaxes back to its orbit.

Dragging the root moves the anchor of the whole map.
"""

import logging
import math
from enum import Enum
from typing import Set

from orbital.services.simulation import SimulationContext

logger = logging.getLogger(__name__)


class DragState(str, Enum):
    FREE = "free"
    DRAGGING = "dragging"


def _is_finite_point(x: float, y: float) -> bool:
    return math.isfinite(x) and math.isfinite(y)


class DragController:
    """Tracks which nodes are being dragged for one map"""

    def __init__(self):
        self.dragging: Set[str] = set()

    def state_of(self, node_id: str) -> DragState:
        return DragState.DRAGGING if node_id in self.dragging else DragState.FREE

    def start_drag(self, context: SimulationContext, node_id: str, x: float, y: float) -> bool:
        """
        Transition free -> dragging and pin the node at (x, y).

        Returns:
            bool: False if the node is not currently visible or the pointer
            is not a finite coordinate
        """
        if not _is_finite_point(x, y):
            logger.warning(f"Ignoring drag start on {node_id!r}: non-finite pointer ({x}, {y})")
            return False
        state = context.states.get(node_id)
        if state is None:
            logger.debug(f"Ignoring drag start on unknown node {node_id!r}")
            return False

        self.dragging.add(node_id)
        state.pinned = True
        self._place(context, node_id, x, y)
        logger.debug(f"Drag start {node_id!r} at ({x:.1f}, {y:.1f})")
        return True

    def drag_to(self, context: SimulationContext, node_id: str, x: float, y: float) -> bool:
        """Move a dragged node to the pointer; ignored unless dragging"""
        if node_id not in self.dragging or node_id not in context.states:
            return False
        if not _is_finite_point(x, y):
            logger.warning(f"Ignoring drag move on {node_id!r}: non-finite pointer ({x}, {y})")
            return False
        self._place(context, node_id, x, y)
        return True

    def end_drag(self, context: SimulationContext, node_id: str) -> bool:
        """
        Transition dragging -> free.

        The node is left at rest where it was released. The root stays
        pinned at its new anchor.
        """
        if node_id not in self.dragging:
            return False
        self.dragging.discard(node_id)

        state = context.states.get(node_id)
        if state is not None:
            state.vx = state.vy = 0.0
            state.pinned = state.parent_id is None
            context.perturb()
        logger.debug(f"Drag end {node_id!r}")
        return True

    def reconcile(self, context: SimulationContext):
        """Drop drags on nodes that vanished and re-pin the rest after a re-layout"""
        for node_id in list(self.dragging):
            state = context.states.get(node_id)
            if state is None:
                self.dragging.discard(node_id)
                continue
            state.pinned = True

    def clear(self):
        self.dragging.clear()

    def _place(self, context: SimulationContext, node_id: str, x: float, y: float):
        state = context.states[node_id]
        state.x, state.y = x, y
        state.vx = state.vy = 0.0
        if state.parent_id is None:
            context.anchor = (x, y)
            context.anchor_moved = True
        context.perturb()
