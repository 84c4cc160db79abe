"""
Visibility resolution.

A node is visible iff it is the root, or its parent is visible and the
parent's id is in the expanded set. Expansion state of hidden nodes is kept,
so collapsing and re-expanding a branch restores its prior detail.
"""

import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, List, Tuple

from orbital.services.hierarchy import NormalizedTree

logger = logging.getLogger(__name__)


@dataclass
class VisibleSet:
    """Nodes and edges currently eligible for layout and rendering"""
    nodes: List[str] = field(default_factory=list)
    edges: List[Tuple[str, str]] = field(default_factory=list)
    children: Dict[str, List[str]] = field(default_factory=dict)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.children

    def __len__(self) -> int:
        return len(self.nodes)


def resolve_visible(tree: NormalizedTree, expanded_ids: AbstractSet[str]) -> VisibleSet:
    """
    Derive the visible subset of a normalized tree.

    Args:
        tree: Normalized hierarchy
        expanded_ids: Ids of expanded nodes

    Returns:
        VisibleSet: Visible node ids in pre-order, parent->child edges and
        the visible children of each visible node
    """
    visible = VisibleSet()
    if tree.root_id is None:
        return visible

    stack = [tree.root_id]
    while stack:
        node_id = stack.pop()
        node = tree.nodes[node_id]
        visible.nodes.append(node_id)

        shown = list(node.children) if node_id in expanded_ids else []
        visible.children[node_id] = shown
        for child_id in shown:
            visible.edges.append((node_id, child_id))
        stack.extend(reversed(shown))

    return visible


def toggle_expanded(
    tree: NormalizedTree,
    expanded_ids: AbstractSet[str],
    node_id: str,
    forget_descendants: bool = False
) -> set:
    """
    Toggle a node's membership in the expanded set.

    Nodes without children, or unknown to the tree, are left alone.

    Args:
        tree: Normalized hierarchy
        expanded_ids: Current expanded set (not mutated)
        node_id: Node to toggle
        forget_descendants: Also collapse every descendant when collapsing

    Returns:
        set: The new expanded set
    """
    updated = set(expanded_ids)
    if not tree.has_children(node_id):
        logger.debug(f"Ignoring toggle for {node_id!r}: no children")
        return updated

    if node_id in updated:
        updated.discard(node_id)
        if forget_descendants:
            updated.difference_update(tree.descendants(node_id))
    else:
        updated.add(node_id)

    return updated


def prune_expanded(tree: NormalizedTree, expanded_ids: AbstractSet[str]) -> set:
    """Drop expanded ids that no longer exist in the hierarchy"""
    return {node_id for node_id in expanded_ids if node_id in tree}
