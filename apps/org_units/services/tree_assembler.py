"""
apps.org_units.services.tree_assembler
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Pure functions turning a flat list of organization units into nested
:class:`~apps.org_units.domain.TreeNode` views, and back.

Assembly first indexes units by parent id, so the cost is O(n) rather than
the O(n²) of filtering the whole list once per node.  Traversal is
iterative: a degenerate chain of thousands of units does not hit the
interpreter's recursion limit.

Nothing here touches the database; callers fetch the tenant's units once
and pass them in.

Public API
----------
build_tree(units, root_parent_id=None, max_nodes=None) -> list[TreeNode]
flatten_tree(nodes) -> list[OrganizationUnit]
compute_levels(links) -> dict[id, int]
"""
from __future__ import annotations

import uuid
from collections import defaultdict, deque
from typing import Iterable, Mapping, Sequence

from apps.org_units.domain import OrganizationUnit, TreeNode
from common.exceptions import HierarchyInconsistencyError, TreeTooLargeError


def _sibling_order(unit: OrganizationUnit) -> tuple[str, str]:
    return (unit.name, str(unit.id))


def build_tree(
    units: Sequence[OrganizationUnit],
    root_parent_id: uuid.UUID | None = None,
    max_nodes: int | None = None,
) -> list[TreeNode]:
    """
    Assemble the subtree hanging below *root_parent_id*.

    Units whose parent is not reachable from *root_parent_id* (for example
    because the parent was filtered out by status) are left out.  Siblings
    are ordered by name.

    Args:
        units: Flat units of one tenant.
        root_parent_id: ``None`` for the whole forest, or a unit id to build
            only that unit's descendants.
        max_nodes: Refuse to assemble more than this many units.

    Returns:
        The top-level nodes, each carrying its full subtree.

    Raises:
        TreeTooLargeError: ``len(units)`` exceeds *max_nodes*.
        HierarchyInconsistencyError: a unit is reachable twice, which only
            happens when the input contains a cycle through *root_parent_id*.
    """
    if max_nodes is not None and len(units) > max_nodes:
        raise TreeTooLargeError(
            f"Hierarchy has {len(units)} units; in-memory assembly is limited "
            f"to {max_nodes}. Use the paginated listing instead."
        )

    children_by_parent: dict[uuid.UUID | None, list[OrganizationUnit]] = defaultdict(list)
    for unit in units:
        children_by_parent[unit.parent_id].append(unit)

    roots = [TreeNode(unit) for unit in sorted(children_by_parent.get(root_parent_id, []), key=_sibling_order)]
    seen: set[uuid.UUID] = {node.unit.id for node in roots}
    pending = deque(roots)
    while pending:
        node = pending.popleft()
        for child in sorted(children_by_parent.get(node.unit.id, []), key=_sibling_order):
            if child.id in seen:
                raise HierarchyInconsistencyError(
                    f"Organization unit '{child.id}' is reachable twice while "
                    "assembling the tree."
                )
            seen.add(child.id)
            child_node = TreeNode(child)
            node.children.append(child_node)
            pending.append(child_node)
    return roots


def flatten_tree(nodes: Iterable[TreeNode]) -> list[OrganizationUnit]:
    """Return the units of *nodes* in pre-order (parent before its children)."""
    flat: list[OrganizationUnit] = []
    stack = list(reversed(list(nodes)))
    while stack:
        node = stack.pop()
        flat.append(node.unit)
        stack.extend(reversed(node.children))
    return flat


def compute_levels(links: Mapping[uuid.UUID, uuid.UUID | None]) -> dict[uuid.UUID, int]:
    """
    Breadth-first depth of every unit reachable from the roots.

    Roots are level 1, their children level 2, and so on.  Units hanging
    off a dangling parent reference get no level.

    Args:
        links: ``{unit_id: parent_id}`` for one tenant.
    """
    children_by_parent: dict[uuid.UUID | None, list[uuid.UUID]] = defaultdict(list)
    for unit_id, parent_id in links.items():
        children_by_parent[parent_id].append(unit_id)

    levels: dict[uuid.UUID, int] = {}
    pending = deque((unit_id, 1) for unit_id in children_by_parent.get(None, []))
    while pending:
        unit_id, level = pending.popleft()
        if unit_id in levels:
            continue
        levels[unit_id] = level
        pending.extend((child_id, level + 1) for child_id in children_by_parent.get(unit_id, []))
    return levels
