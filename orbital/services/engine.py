"""
Orbital layout engine.

Ties the pipeline together for one map:

    normalize -> resolve visible -> plan orbits -> reconcile -> integrate

Planning runs whenever the hierarchy, the expanded set or the viewport
changes. Integration runs in an asyncio frame loop that steps once per
frame_interval, emits a LayoutFrame per tick and stops once the system
settles. Any perturbation wakes it again.

Only one loop writes to a map at a time: a re-layout cancels the running
loop before starting a fresh one, and detach() cancels it for good.
"""

import asyncio
import inspect
import logging
import math
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

from orbital.config import Config
from orbital.schemas.hierarchy import FolderItem
from orbital.schemas.layout import EdgeSegment, LayoutFrame, NodePosition, OrbitRing
from orbital.services.hierarchy import NormalizedTree, normalize_hierarchy
from orbital.services.interaction import DragController, DragState
from orbital.services.planner import OrbitPlan, plan_orbits
from orbital.services.simulation import SimulationContext, reconcile, step
from orbital.services.visibility import VisibleSet, prune_expanded, resolve_visible, toggle_expanded

logger = logging.getLogger(__name__)

FrameCallback = Callable[[LayoutFrame], Union[Awaitable[Any], Any]]


class OrbitalEngine:
    """
    Layout engine for a single orbital map.

    Args:
        config: Service configuration
        map_id: Id stamped on emitted frames
        on_frame: Called with every frame produced by the loop (sync or async)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        map_id: Optional[str] = None,
        on_frame: Optional[FrameCallback] = None
    ):
        self.config = config or Config()
        self.map_id = map_id
        self.context = SimulationContext(self.config)
        self.drag = DragController()
        self.tree = NormalizedTree()
        self.expanded_ids: set = set()
        self.width = 0.0
        self.height = 0.0
        self.detached = False
        self._on_frame = on_frame
        self._visible = VisibleSet()
        self._plan = OrbitPlan()
        self._task: Optional[asyncio.Task] = None

    # -- inputs ---------------------------------------------------------

    def set_hierarchy(self, items: Optional[Iterable[FolderItem]]):
        """Replace the hierarchy snapshot and re-plan"""
        if self.detached:
            return
        self.tree = normalize_hierarchy(list(items or []), self.config.layout)
        self.expanded_ids = prune_expanded(self.tree, self.expanded_ids)
        logger.info(f"Map {self.map_id}: hierarchy set with {len(self.tree)} nodes")
        self.relayout()

    def set_expanded(self, expanded_ids: Iterable[str]):
        if self.detached:
            return
        self.expanded_ids = set(expanded_ids)
        self.relayout()

    def toggle(self, node_id: str) -> set:
        """
        Toggle expansion of a node (double-click on the node).

        Returns:
            set: The expanded set after the toggle
        """
        if self.detached:
            return set()
        updated = toggle_expanded(
            self.tree,
            self.expanded_ids,
            node_id,
            forget_descendants=self.config.layout.forget_descendants_on_collapse
        )
        if updated != self.expanded_ids:
            self.expanded_ids = updated
            logger.debug(f"Map {self.map_id}: toggled {node_id!r}")
            self.relayout()
        return set(self.expanded_ids)

    def set_viewport(self, width: float, height: float):
        """
        Update viewport dimensions.

        A zero or negative size is remembered but planning and integration
        are skipped until a valid size arrives. Non-finite sizes are ignored.
        """
        if self.detached:
            return
        if not (math.isfinite(width) and math.isfinite(height)):
            logger.warning(f"Map {self.map_id}: ignoring non-finite viewport {width}x{height}")
            return
        self.width, self.height = float(width), float(height)
        if not self.has_viewport:
            logger.warning(f"Map {self.map_id}: degenerate viewport {width}x{height}; layout paused")
            self._cancel_loop()
            return

        if self.config.layout.recenter_on_resize or not self.context.anchor_moved:
            self.context.anchor = self.center
            self.context.anchor_moved = False
        self.relayout()

    def recenter(self):
        """Move the root anchor back to the viewport center"""
        if self.detached or not self.has_viewport:
            return
        self.context.anchor = self.center
        self.context.anchor_moved = False
        self.relayout()

    def start_drag(self, node_id: str, x: float, y: float) -> bool:
        if self.detached or not self.drag.start_drag(self.context, node_id, x, y):
            return False
        self.wake()
        return True

    def drag_to(self, node_id: str, x: float, y: float) -> bool:
        if self.detached or not self.drag.drag_to(self.context, node_id, x, y):
            return False
        self.wake()
        return True

    def end_drag(self, node_id: str) -> bool:
        if self.detached or not self.drag.end_drag(self.context, node_id):
            return False
        self.wake()
        return True

    def drag_state(self, node_id: str) -> DragState:
        return self.drag.state_of(node_id)

    # -- pipeline -------------------------------------------------------

    @property
    def has_viewport(self) -> bool:
        return self.width > 0 and self.height > 0

    @property
    def center(self) -> tuple:
        return self.width / 2, self.height / 2

    @property
    def visible(self) -> VisibleSet:
        return self._visible

    @property
    def plan(self) -> OrbitPlan:
        return self._plan

    def relayout(self):
        """Re-resolve visibility, re-plan and reconcile simulation state"""
        if self.detached or not self.has_viewport:
            return

        self._visible = resolve_visible(self.tree, self.expanded_ids)
        self._plan = plan_orbits(
            self.tree,
            self._visible,
            self.expanded_ids,
            anchor=self.context.anchor,
            positions=self.context.positions(),
            config=self.config.layout,
            padding=self.config.physics.collision_padding
        )
        reconcile(self.context, self.tree, self._visible, self._plan, bounds=(0.0, 0.0, self.width, self.height))
        self.drag.reconcile(self.context)

        self._cancel_loop()
        self.wake()

    def tick(self) -> bool:
        """
        Run a single integration step.

        Returns:
            bool: False when nothing was stepped (detached, no viewport or empty map)
        """
        if self.detached or not self.has_viewport or not self.context.states:
            return False
        step(self.context)
        return True

    def run_until_settled(self, max_ticks: Optional[int] = None) -> int:
        """
        Step synchronously until settled.

        Returns:
            int: Number of ticks run
        """
        limit = self.config.physics.max_ticks_per_run if max_ticks is None else max_ticks
        ticks = 0
        while ticks < limit and self.tick():
            ticks += 1
            if self.context.is_settled():
                break
        return ticks

    def is_settled(self) -> bool:
        return not self.context.states or self.context.is_settled()

    # -- output ---------------------------------------------------------

    def frame(self) -> LayoutFrame:
        """Snapshot of every visible node, edge and orbit ring"""
        states = self.context.states
        nodes: List[NodePosition] = []
        edges: List[EdgeSegment] = []
        rings: List[OrbitRing] = []

        for node_id, state in states.items():
            node = self.tree.nodes[node_id]
            nodes.append(NodePosition(
                id=node_id,
                name=node.name,
                x=state.x,
                y=state.y,
                depth=node.depth,
                radius=state.radius,
                expanded=node_id in self.expanded_ids,
                has_children=bool(node.children)
            ))
            node_plan = self._plan.get(node_id)
            if node_plan and self._visible.children.get(node_id):
                rings.append(OrbitRing(id=node_id, cx=state.x, cy=state.y, r=node_plan.child_orbit_radius))

        for source_id, target_id in self.context.edges:
            source = states.get(source_id)
            target = states.get(target_id)
            if source is None or target is None:
                continue
            edges.append(EdgeSegment(
                id=f"{source_id}->{target_id}",
                source=source_id,
                target=target_id,
                x1=source.x,
                y1=source.y,
                x2=target.x,
                y2=target.y
            ))

        return LayoutFrame(
            map_id=self.map_id,
            tick=self.context.tick,
            settled=self.is_settled(),
            nodes=nodes,
            edges=edges,
            rings=rings
        )

    # -- frame loop -----------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def wake(self):
        """Start the frame loop unless one is already running"""
        if self.detached or not self.has_viewport or not self.context.states:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop: the caller drives tick() itself
            return

        if self.running and self._task.get_loop() is loop:
            return
        self._task = loop.create_task(self._run())

    async def wait(self):
        """Wait for the current frame loop to finish"""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait([task])

    async def _run(self):
        physics = self.config.physics
        ticks = 0
        logger.debug(f"Map {self.map_id}: frame loop started")

        while not self.detached and ticks < physics.max_ticks_per_run:
            if not self.tick():
                break
            ticks += 1
            await self._emit(self.frame())
            if self.context.is_settled():
                logger.debug(f"Map {self.map_id}: settled after {ticks} ticks")
                break
            await asyncio.sleep(physics.frame_interval)

    async def _emit(self, frame: LayoutFrame):
        if self._on_frame is None:
            return
        try:
            result = self._on_frame(frame)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Map {self.map_id}: frame callback failed")

    def _cancel_loop(self):
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task.get_loop().is_closed():
            return
        task.cancel()

    def detach(self):
        """Cancel the frame loop and drop all node state; later calls are no-ops"""
        if self.detached:
            return
        self._cancel_loop()
        self.detached = True
        self._on_frame = None
        self.drag.clear()
        self.context.clear()
        self.tree = NormalizedTree()
        self._visible = VisibleSet()
        self._plan = OrbitPlan()
        logger.info(f"Map {self.map_id}: detached")
