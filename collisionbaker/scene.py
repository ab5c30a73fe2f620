"""Scene index and ancestor lookup.

Nodes are keyed by their path relative to the scene root (``parent`` joined
with ``name``), sub-resources by their ``id``. The index is always built over
the whole record stream before anything is resolved, since a node may refer
to an ancestor or resource declared further down the file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Set, Tuple

from collisionbaker.errors import NodeSkipped, SkipReason
from collisionbaker.records import Record

NODE_TAG = "node"
SUB_RESOURCE_TAG = "sub_resource"
SELF_PARENT = "."
PATH_SEPARATOR = "/"


def node_path(record: Record) -> str:
    """Join the record's ``parent`` and ``name`` into its index key.

    Missing, empty and ``"."`` parts are left out, so children of the root
    are keyed by their bare name and the root itself by its name.
    """
    parts = []
    for key in ("parent", "name"):
        value = record.get_field(key)
        if not value or value == SELF_PARENT:
            continue
        parts.append(value)
    return PATH_SEPARATOR.join(parts)


@dataclass
class SceneIndex:
    nodes: Dict[str, Record] = field(default_factory=dict)
    sub_resources: Dict[str, Record] = field(default_factory=dict)

    @classmethod
    def build(cls, records: Iterable[Record]) -> "SceneIndex":
        index = cls()
        for record in records:
            if record.identifier == NODE_TAG:
                path = node_path(record)
                if path:
                    index.nodes[path] = record
            elif record.identifier == SUB_RESOURCE_TAG:
                resource_id = record.get_field("id")
                if resource_id is not None:
                    index.sub_resources[resource_id] = record
        return index


def build_index(records: Iterable[Record]) -> Tuple[Dict[str, Record], Dict[str, Record]]:
    index = SceneIndex.build(records)
    return index.nodes, index.sub_resources


def find_ancestor(node: Record, nodes: Dict[str, Record]) -> Record:
    """Walk the declared ``parent`` chain up to the first child of the root.

    The node whose parent is ``"."`` is the ancestor; it is returned as-is
    whether or not it carries a transform.

    Raises:
        NodeSkipped: the chain has a node without ``parent``, points at a
            path that is not indexed, or loops back on itself.
    """
    current = node
    visited: Set[str] = {node_path(node)}
    while True:
        parent_id = current.get_field("parent")
        if parent_id is None:
            raise NodeSkipped(
                SkipReason.MISSING_PARENT,
                f"Node {current.describe()} does not have a 'parent' field",
            )
        if parent_id == SELF_PARENT:
            return current

        if parent_id in visited:
            raise NodeSkipped(
                SkipReason.PARENT_CYCLE,
                f"Parent chain of {node.describe()} loops back to '{parent_id}'",
            )
        visited.add(parent_id)

        parent = nodes.get(parent_id)
        if parent is None:
            raise NodeSkipped(SkipReason.PARENT_NOT_FOUND, f"Parent with id '{parent_id}' not found")
        current = parent
