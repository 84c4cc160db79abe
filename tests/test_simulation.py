import math
import pytest

from orbital.config import Config, LayoutConfig
from orbital.schemas.hierarchy import FolderItem
from orbital.services.engine import OrbitalEngine
from orbital.services.simulation import NodeState, SimulationContext, kinetic_energy, step


def distance(a, b):
    return math.hypot(a[0] - b[0], a[1] - b[1])


def with_extra_child(items):
    """Sample hierarchy plus a small third child C under the root"""
    root = items[0]
    return [root.model_copy(update={"children": root.children + [FolderItem(id="C", name="C", size=1)]})]


def without_b(items):
    root = items[0]
    return [root.model_copy(update={"children": [child for child in root.children if child.id != "B"]})]


def spread_items():
    """Root with three children, the largest of which has three children of its own"""
    return [
        FolderItem(id="root", name="root", children=[
            FolderItem(id="P1", name="P1", size=30, children=[
                FolderItem(id="P1a", name="P1a", size=3),
                FolderItem(id="P1b", name="P1b", size=2),
                FolderItem(id="P1c", name="P1c", size=1),
            ]),
            FolderItem(id="P2", name="P2", size=20),
            FolderItem(id="P3", name="P3", size=10),
        ])
    ]


def fan_items(grandchild_counts):
    """Root whose children carry the given numbers of leaves"""
    children = []
    for i, count in enumerate(grandchild_counts):
        leaves = [FolderItem(id=f"P{i}-{j}", name=f"P{i}-{j}", size=j + 1) for j in range(count)]
        children.append(FolderItem(id=f"P{i}", name=f"P{i}", children=leaves))
    return [FolderItem(id="root", name="root", children=children)]


class TestStep:
    """Tests for a single integration step"""

    def test_empty_context_is_at_rest(self):
        context = SimulationContext(Config())

        assert step(context) == 0.0
        assert context.is_settled()

    def test_kinetic_energy_ignores_pinned_nodes(self):
        context = SimulationContext(Config())
        context.states = {
            "a": NodeState(id="a", depth=1, parent_id="r", radius=10.0, x=0.0, y=0.0, vx=3.0, vy=4.0),
            "b": NodeState(id="b", depth=1, parent_id="r", radius=10.0, x=0.0, y=0.0, vx=100.0, pinned=True),
        }

        assert kinetic_energy(context) == 25.0

    def test_step_advances_tick(self, engine):
        engine.toggle("root")
        before = engine.context.tick

        engine.tick()

        assert engine.context.tick == before + 1

    def test_non_finite_state_is_reset(self, engine):
        """A NaN position never spreads to the rest of the map"""
        engine.set_expanded({"root", "A"})
        engine.context.states["A1"].x = float("nan")
        engine.context.states["A1"].vy = float("inf")

        engine.tick()

        for state in engine.context.states.values():
            assert all(math.isfinite(value) for value in (state.x, state.y, state.vx, state.vy))


class TestReconcile:
    """Tests for carrying state across re-layouts"""

    def test_new_nodes_spawn_next_to_parent(self, engine):
        """Children emerge just outside the parent's edge on their target spoke"""
        engine.toggle("root")

        root = engine.context.states["root"]
        a = engine.context.states["A"]
        clearance = root.radius + a.radius + engine.config.physics.collision_padding
        assert math.isclose(distance(a.position, root.position), clearance)
        assert math.isclose(a.x, 450.0, abs_tol=1e-9)
        assert a.y < root.y
        assert (a.vx, a.vy) == (0.0, 0.0)

    def test_persisting_node_keeps_position_and_velocity(self, engine, sample_items):
        engine.toggle("root")
        for _ in range(5):
            engine.tick()
        a = engine.context.states["A"]
        before = (a.x, a.y, a.vx, a.vy)

        engine.set_hierarchy(with_extra_child(sample_items))

        after = engine.context.states["A"]
        assert after is a
        assert (after.x, after.y, after.vx, after.vy) == before
        assert "C" in engine.context.states

    def test_removed_node_is_discarded(self, engine, sample_items):
        engine.set_expanded({"root", "B"})
        engine.run_until_settled()

        engine.set_hierarchy(without_b(sample_items))

        for node_id in ("B", "B1"):
            assert node_id not in engine.context.states
            assert node_id not in engine.context.dormant
        assert engine.expanded_ids == {"root"}

    def test_collapsed_children_restore_where_they_were(self, engine):
        """Collapse then expand brings children back at their previous offset"""
        engine.set_expanded({"root", "A"})
        engine.run_until_settled()
        a1 = engine.context.states["A1"].position

        engine.toggle("A")
        assert "A1" not in engine.context.states
        assert "A1" in engine.context.dormant

        engine.toggle("A")
        restored = engine.context.states["A1"]
        assert restored.x == pytest.approx(a1[0])
        assert restored.y == pytest.approx(a1[1])
        assert (restored.vx, restored.vy) == (0.0, 0.0)
        assert "A1" not in engine.context.dormant

    def test_collapsed_state_follows_moved_parent(self, engine):
        """Dormant children are stored relative to their parent"""
        engine.set_expanded({"root", "A"})
        engine.run_until_settled()
        a = engine.context.states["A"]
        offset = (engine.context.states["A1"].x - a.x, engine.context.states["A1"].y - a.y)

        engine.toggle("A")
        a.x += 40.0
        engine.toggle("A")

        restored = engine.context.states["A1"]
        assert restored.x == pytest.approx(a.x + offset[0])
        assert restored.y == pytest.approx(a.y + offset[1])

    def test_collapsed_state_not_retained_when_disabled(self, sample_items):
        engine = OrbitalEngine(Config(layout=LayoutConfig(retain_collapsed_state=False)))
        engine.set_hierarchy(sample_items)
        engine.set_viewport(900, 700)
        engine.set_expanded({"root", "A"})
        engine.run_until_settled()

        engine.toggle("A")
        assert engine.context.dormant == {}

        engine.toggle("A")
        a = engine.context.states["A"]
        a1 = engine.context.states["A1"]
        clearance = a.radius + a1.radius + engine.config.physics.collision_padding
        assert math.isclose(distance(a1.position, a.position), clearance)
        engine.detach()

    def test_root_snaps_to_new_anchor(self, engine):
        engine.set_viewport(1000, 800)

        assert engine.context.states["root"].position == (500.0, 400.0)


class TestConvergence:
    """Tests for the settled layout"""

    def test_root_stays_at_center(self, engine):
        engine.set_expanded({"root", "A", "B"})

        engine.run_until_settled(2000)

        assert engine.is_settled()
        assert engine.context.states["root"].position == (450.0, 350.0)

    def test_settled_layout_has_no_overlaps(self):
        engine = OrbitalEngine(Config())
        engine.set_hierarchy(spread_items())
        engine.set_viewport(900, 700)
        engine.set_expanded({"root", "P1"})

        engine.run_until_settled(3000)

        assert engine.is_settled()
        states = list(engine.context.states.values())
        assert len(states) == 7
        for i, first in enumerate(states):
            for second in states[i + 1:]:
                assert distance(first.position, second.position) >= first.radius + second.radius - 1.0
        engine.detach()

    @pytest.mark.parametrize("grandchild_counts", [
        [1] * 24,
        [48],
        [12, 12, 12, 11],
        [7] * 7
    ])
    def test_larger_maps_settle_without_overlaps(self, grandchild_counts):
        items = fan_items(grandchild_counts)
        engine = OrbitalEngine(Config())
        engine.set_hierarchy(items)
        engine.set_viewport(900, 700)
        engine.set_expanded({"root"} | {child.id for child in items[0].children})

        engine.run_until_settled(5000)

        assert engine.is_settled()
        states = list(engine.context.states.values())
        assert len(states) == 1 + len(grandchild_counts) + sum(grandchild_counts)
        for i, first in enumerate(states):
            for second in states[i + 1:]:
                assert distance(first.position, second.position) >= first.radius + second.radius - 1.0
        engine.detach()

    def test_nodes_settle_near_their_targets(self, engine):
        engine.set_expanded({"root", "A", "B"})

        engine.run_until_settled(2000)

        for node_id, state in engine.context.states.items():
            assert distance(state.position, (state.target_x, state.target_y)) < 5.0, node_id

    def test_same_inputs_same_trajectory(self, sample_items):
        """Seeded tie-breaking makes runs reproducible"""
        runs = []
        for _ in range(2):
            engine = OrbitalEngine(Config())
            engine.set_hierarchy(sample_items)
            engine.set_viewport(900, 700)
            engine.set_expanded({"root", "A", "B"})
            for _ in range(30):
                engine.tick()
            runs.append(engine.context.positions())
            engine.detach()

        assert runs[0] == runs[1]
