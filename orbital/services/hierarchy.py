"""
Hierarchy normalization service.

Converts the external folder tree into a flat set of layout nodes with
stable identity, rolled-up size, depth and parent linkage.

Only selected items are visited; unselected subtrees do not exist for
layout purposes. Data faults (duplicate ids, dangling parents, cyclic
parent references) are repaired deterministically and logged.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from orbital.config import LayoutConfig
from orbital.schemas.hierarchy import FolderItem
from orbital.services.identity import node_identity

logger = logging.getLogger(__name__)


@dataclass
class Node:
    """One hierarchy entry projected into layout space"""
    id: str
    name: str
    size: float
    depth: int
    parent_id: Optional[str]
    children: List[str] = field(default_factory=list)
    service_id: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass
class NormalizedTree:
    """Flat node lookup plus the single root id"""
    root_id: Optional[str] = None
    nodes: Dict[str, Node] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def get(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def has_children(self, node_id: str) -> bool:
        node = self.nodes.get(node_id)
        return bool(node and node.children)

    def descendants(self, node_id: str) -> Iterator[str]:
        """Yield every descendant id of a node, depth-first"""
        node = self.nodes.get(node_id)
        if node is None:
            return
        stack = list(reversed(node.children))
        while stack:
            child_id = stack.pop()
            yield child_id
            stack.extend(reversed(self.nodes[child_id].children))


@dataclass
class _Record:
    id: str
    name: str
    own_size: float
    parent_id: Optional[str]


def _clean_size(value: Optional[float]) -> float:
    if value is None or not isinstance(value, (int, float)):
        return 0.0
    if math.isnan(value) or value < 0 or math.isinf(value):
        return 0.0
    return float(value)


def _flatten(items: Iterable[FolderItem]) -> tuple[Dict[str, _Record], set]:
    """
    Flatten nested and flat items into ordered records.

    Returns:
        (records, pruned): selected records keyed by id in input order, and
        the ids of unselected items whose subtrees must be pruned
    """
    records: Dict[str, _Record] = {}
    pruned: set = set()

    # Iterative pre-order walk; hierarchies may be deeper than the recursion limit
    stack: List[Tuple[FolderItem, Optional[str]]] = [(item, None) for item in reversed(list(items))]
    while stack:
        item, parent_identity = stack.pop()
        if parent_identity is None and item.parent_id is not None:
            parent_identity = str(item.parent_id)

        identity = node_identity(item.id, parent_identity, item.name)

        if not item.selected:
            pruned.add(identity)
            continue

        if identity in records or identity in pruned:
            logger.warning(f"Duplicate node id {identity!r} ({item.name}); dropping later occurrence")
            continue

        records[identity] = _Record(
            id=identity,
            name=item.name,
            own_size=_clean_size(item.size),
            parent_id=parent_identity
        )
        stack.extend((child, identity) for child in reversed(item.children))

    return records, pruned


def _drop_pruned_descendants(records: Dict[str, _Record], pruned: set) -> None:
    """Remove records whose ancestor chain reaches an unselected item"""
    doomed = []
    for record in records.values():
        seen = set()
        parent_id = record.parent_id
        while parent_id is not None and parent_id not in seen:
            if parent_id in pruned:
                doomed.append(record.id)
                break
            seen.add(parent_id)
            parent = records.get(parent_id)
            if parent is None:
                break
            parent_id = parent.parent_id

    for node_id in doomed:
        del records[node_id]


def _repair_links(records: Dict[str, _Record]) -> None:
    """Turn dangling references into roots and break parent cycles"""
    for record in records.values():
        if record.parent_id is not None and record.parent_id not in records:
            logger.warning(f"Node {record.id!r} references missing parent {record.parent_id!r}; treating as root")
            record.parent_id = None

    children: Dict[str, List[str]] = defaultdict(list)
    for record in records.values():
        if record.parent_id is not None:
            children[record.parent_id].append(record.id)

    reached: set = set()

    def mark(start: str):
        stack = [start]
        while stack:
            node_id = stack.pop()
            if node_id in reached:
                continue
            reached.add(node_id)
            stack.extend(children.get(node_id, []))

    for record in records.values():
        if record.parent_id is None:
            mark(record.id)

    for node_id in sorted(records):
        if node_id in reached:
            continue

        # Walk up until a node repeats; the repeated tail is the cycle
        path: List[str] = []
        position: Dict[str, int] = {}
        current = node_id
        while current not in position:
            position[current] = len(path)
            path.append(current)
            current = records[current].parent_id
        cycle = path[position[current]:]

        breaker = min(cycle)
        logger.warning(f"Cyclic parent reference through {breaker!r}; dropping back-edge to {records[breaker].parent_id!r}")
        children[records[breaker].parent_id].remove(breaker)
        records[breaker].parent_id = None
        mark(breaker)


def normalize_hierarchy(
    items: Optional[Iterable[FolderItem]],
    config: Optional[LayoutConfig] = None
) -> NormalizedTree:
    """
    Build the normalized layout tree from raw hierarchy items.

    Args:
        items: Top-level folder items (nested children and/or flat parent_id links)
        config: Layout configuration (synthetic root naming)

    Returns:
        NormalizedTree: Empty tree for empty input, otherwise a tree with exactly one root
    """
    config = config or LayoutConfig()
    if not items:
        return NormalizedTree()

    records, pruned = _flatten(items)
    _drop_pruned_descendants(records, pruned)
    if not records:
        return NormalizedTree()

    _repair_links(records)

    children: Dict[str, List[str]] = defaultdict(list)
    top_level: List[str] = []
    for record in records.values():
        if record.parent_id is None:
            top_level.append(record.id)
        else:
            children[record.parent_id].append(record.id)

    if len(top_level) == 1:
        root_id = top_level[0]
    else:
        root_id = config.synthetic_root_id
        while root_id in records:
            root_id = f"_{root_id}"
        records[root_id] = _Record(id=root_id, name=config.synthetic_root_name, own_size=0.0, parent_id=None)
        for node_id in top_level:
            records[node_id].parent_id = root_id
        children[root_id] = top_level

    tree = NormalizedTree(root_id=root_id)

    # Children are always reached after their parent, so the reversed walk
    # rolls sizes up leaves-first
    walk: List[str] = []
    pending = [root_id]
    while pending:
        node_id = pending.pop()
        walk.append(node_id)
        pending.extend(children.get(node_id, []))

    sizes: Dict[str, float] = {}
    for node_id in reversed(walk):
        total = sum(sizes[child_id] for child_id in children.get(node_id, []))
        sizes[node_id] = max(records[node_id].own_size, total)

    stack: List[Tuple[str, int, Optional[str]]] = [(root_id, 0, None)]
    while stack:
        node_id, depth, service_id = stack.pop()
        record = records[node_id]
        ordered = sorted(
            children.get(node_id, []),
            key=lambda child_id: (-sizes[child_id], records[child_id].name, child_id)
        )
        tree.nodes[node_id] = Node(
            id=node_id,
            name=record.name,
            size=sizes[node_id],
            depth=depth,
            parent_id=record.parent_id,
            children=ordered,
            service_id=service_id
        )
        stack.extend(
            (child_id, depth + 1, service_id if depth > 0 else child_id)
            for child_id in reversed(ordered)
        )

    logger.debug(f"Normalized hierarchy: {len(tree)} nodes, root {root_id!r}")
    return tree
