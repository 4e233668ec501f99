"""
apps.org_units.services.cycle_detector
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Ancestor-chain walking for the organization unit hierarchy.

The walk only needs a *parent lookup*: a callable mapping a unit id to its
stored parent id (``None`` for a root) and raising :class:`LookupError` for
an id that does not resolve.  The store's
:meth:`~apps.org_units.services.store.OrganizationUnitStore.get_parent_id`
bound to a tenant is one; a plain ``dict.__getitem__`` is another, which
keeps this module free of ORM access.

Public API
----------
iter_ancestor_ids(start_id, get_parent_id)            – start + ancestors
would_create_cycle(unit_id, candidate, get_parent_id) – re-parent check
"""
from __future__ import annotations

from typing import Callable, Hashable, Iterator, Optional

import structlog

from common.exceptions import HierarchyInconsistencyError

logger = structlog.get_logger(__name__)

ParentLookup = Callable[[Hashable], Optional[Hashable]]


def iter_ancestor_ids(start_id: Hashable, get_parent_id: ParentLookup) -> Iterator[Hashable]:
    """
    Yield *start_id*, then each ancestor up to the root.

    A parent reference that does not resolve ends the chain quietly.
    Reaching an id twice means the stored hierarchy already contains a
    cycle, which is reported as :class:`HierarchyInconsistencyError`.
    """
    visited: set[Hashable] = set()
    current: Hashable | None = start_id
    while current is not None:
        if current in visited:
            logger.error(
                "hierarchy_inconsistency_detected",
                start_id=str(start_id),
                revisited_id=str(current),
            )
            raise HierarchyInconsistencyError(
                f"Error during circular dependency check due to inconsistent "
                f"data: unit '{current}' was reached twice."
            )
        visited.add(current)
        yield current
        try:
            current = get_parent_id(current)
        except LookupError:
            logger.warning("ancestor_chain_dangling_reference", unit_id=str(current))
            return


def would_create_cycle(
    unit_id: Hashable,
    candidate_parent_id: Hashable | None,
    get_parent_id: ParentLookup,
) -> bool:
    """
    Return ``True`` if making *candidate_parent_id* the parent of *unit_id*
    would make *unit_id* its own ancestor.

    Moving a unit to the root (``candidate_parent_id is None``) never
    creates a cycle.
    """
    if candidate_parent_id is None:
        return False
    if candidate_parent_id == unit_id:
        return True
    return any(node_id == unit_id for node_id in iter_ancestor_ids(candidate_parent_id, get_parent_id))
