"""
apps.org_units.services.uniqueness
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Sibling-scoped name uniqueness check.

Siblings are the units sharing ``(tenant_id, parent_id)``; every root unit of
a tenant belongs to one sibling group.  The check produces a readable
:class:`~common.exceptions.ConflictError`; the partial unique constraints on
``organization_units`` still guard against concurrent inserts.
"""
from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog

from common.exceptions import ConflictError

if TYPE_CHECKING:
    from apps.org_units.services.store import OrganizationUnitStore

logger = structlog.get_logger(__name__)


def check_name_unique(
    store: "OrganizationUnitStore",
    tenant_id: uuid.UUID,
    name: str,
    parent_id: uuid.UUID | None = None,
    *,
    exclude_id: uuid.UUID | None = None,
) -> None:
    """
    Raise :class:`ConflictError` if *name* is taken in the sibling group.

    Args:
        store: Store used for the count query.
        tenant_id: Tenant scope.
        name: Candidate name.
        parent_id: Effective parent; ``None`` means the root group.
        exclude_id: Unit to ignore, i.e. the unit being renamed or moved.
    """
    logger.debug(
        "org_unit_name_uniqueness_check",
        name=name,
        tenant_id=str(tenant_id),
        parent_id=str(parent_id) if parent_id else "root",
    )
    count = store.count_siblings_named(tenant_id, name, parent_id, exclude_id=exclude_id)
    if count > 0:
        where = f"under parent '{parent_id}'" if parent_id else "at the root level"
        raise ConflictError(
            f"An organization unit with name '{name}' already exists {where} "
            "for this tenant."
        )
