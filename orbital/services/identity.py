"""
Canonical node identity.

A node keeps the same identity across re-layouts so its simulation state
(position, velocity) can be carried over instead of snapping.
"""

import hashlib
from typing import Optional, Union


def node_identity(
    explicit_id: Optional[Union[str, int]],
    parent_identity: Optional[str],
    name: str
) -> str:
    """
    Resolve the identity of a hierarchy item.

    Args:
        explicit_id: Id supplied by the data source, if any
        parent_identity: Identity of the parent node (None for top-level items)
        name: Display name of the item

    Returns:
        str: The explicit id as a string, or a deterministic hash of
        (parent identity, name) when no id was supplied
    """
    if isinstance(explicit_id, bool):
        explicit_id = None
    if isinstance(explicit_id, (str, int)) and str(explicit_id) != "":
        return str(explicit_id)

    digest = hashlib.sha1(f"{parent_identity or ''}/{name}".encode("utf-8")).hexdigest()
    return f"h:{digest[:16]}"
