"""
apps.org_units.services.org_unit_service
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
All business logic for organization units.

Views must call only :class:`OrganizationUnitService`.  No business logic
lives in views or serializers.

Responsibilities
----------------
- Create, update, status transition and deletion of units, enforcing
  sibling name uniqueness, same-tenant parents and the absence of cycles.
- Flat paginated search and single-unit reads.
- Tree reads via :mod:`apps.org_units.services.tree_assembler`.
- Effective status: a unit is effectively inactive when it or any ancestor
  is ``Inactive``.  Stored statuses of descendants are never rewritten.

Collaborators are injected: the store, a tenant validator
(``tenant_id -> Tenant``, raising :class:`~common.exceptions.NotFoundError`)
and a user directory (``unit_id -> assigned user count``).
"""
from __future__ import annotations

import contextlib
import uuid
from functools import partial
from typing import Any, Callable

import structlog

from apps.org_units.domain import (
    EffectiveStatus,
    OrganizationUnit,
    OrgUnitStatus,
    Page,
    TreeNode,
    UnitDetail,
)
from apps.org_units.services.cycle_detector import iter_ancestor_ids, would_create_cycle
from apps.org_units.services.store import OrganizationUnitStore
from apps.org_units.services.tree_assembler import build_tree, compute_levels
from apps.org_units.services.uniqueness import check_name_unique
from common.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    TreeTooLargeError,
)

logger = structlog.get_logger(__name__)

#: Query-string sentinel selecting root units in :meth:`find_all`.
ROOT_PARENT_SENTINEL = "null"

#: Fields :meth:`OrganizationUnitService.update` accepts.  ``tenant_id`` is
#: immutable and ``status`` has its own operation.
UPDATABLE_FIELDS = frozenset({"name", "parent_id", "description", "leader_user_id"})

DEFAULT_PAGE_SIZE = 10


def _as_uuid(value: Any, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise InvalidInputError(f"{field} must be a valid UUID, got '{value}'.")


def _optional_uuid(value: Any, field: str) -> uuid.UUID | None:
    return None if value is None else _as_uuid(value, field)


def _require_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidInputError("name must be a non-empty string.")
    return name


class OrganizationUnitService:
    """
    Orchestrates the hierarchy store, uniqueness checker, cycle detector
    and tree assembler.

    Args:
        store: Hierarchy store handle.
        tenant_validator: Returns the tenant for an id or raises NotFoundError.
        user_directory: Returns how many users are assigned to a unit.
        max_tree_nodes: Node budget for in-memory tree assembly.
        max_page_size: Upper bound for ``page_size`` in :meth:`find_all`.
    """

    def __init__(
        self,
        store: OrganizationUnitStore,
        *,
        tenant_validator: Callable[[uuid.UUID], Any],
        user_directory: Callable[[uuid.UUID], int],
        max_tree_nodes: int = 5000,
        max_page_size: int = 100,
    ) -> None:
        self.store = store
        self.tenant_validator = tenant_validator
        self.user_directory = user_directory
        self.max_tree_nodes = max_tree_nodes
        self.max_page_size = max_page_size

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_existing(
        self,
        unit_id: Any,
        tenant_id: uuid.UUID | None = None,
    ) -> OrganizationUnit:
        unit_id = _as_uuid(unit_id, "id")
        unit = self.store.get(unit_id, tenant_id=tenant_id)
        if unit is None:
            scope = f" within tenant {tenant_id}" if tenant_id else ""
            raise NotFoundError(f"Organization unit with id {unit_id} not found{scope}.")
        return unit

    def _validate_tenant_and_parent(
        self,
        tenant_id: uuid.UUID,
        parent_id: uuid.UUID | None,
    ) -> uuid.UUID:
        """Check the tenant exists and *parent_id* (if any) lives in it; return the tenant id."""
        tenant = self.tenant_validator(tenant_id)
        tenant_id = tenant.id
        if parent_id is not None and self.store.get(parent_id, tenant_id=tenant_id) is None:
            raise NotFoundError(
                f"Parent organization unit with ID '{parent_id}' not found "
                f"within tenant '{tenant_id}'."
            )
        return tenant_id

    def _parent_lookup(self, tenant_id: uuid.UUID):
        return partial(self.store.get_parent_id, tenant_id=tenant_id)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        *,
        tenant_id: Any,
        name: str,
        parent_id: Any = None,
        description: str | None = None,
        leader_user_id: Any = None,
    ) -> OrganizationUnit:
        """
        Create a unit with status ``Active``.

        Raises:
            InvalidInputError: Blank name or malformed ids.
            NotFoundError: Tenant or parent missing.
            ConflictError: A sibling already has *name*.
            InvalidReferenceError: The store rejected a reference.
        """
        name = _require_name(name)
        tenant_id = _as_uuid(tenant_id, "tenant_id")
        parent_id = _optional_uuid(parent_id, "parent_id")
        leader_user_id = _optional_uuid(leader_user_id, "leader_user_id")

        tenant_id = self._validate_tenant_and_parent(tenant_id, parent_id)
        check_name_unique(self.store, tenant_id, name, parent_id)

        unit = self.store.insert(
            tenant_id=tenant_id,
            name=name,
            parent_id=parent_id,
            description=description or "",
            leader_user_id=leader_user_id,
        )
        logger.info(
            "org_unit_created",
            org_unit_id=str(unit.id),
            name=unit.name,
            tenant_id=str(unit.tenant_id),
            parent_id=str(unit.parent_id) if unit.parent_id else None,
        )
        return unit

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_all(
        self,
        *,
        tenant_id: Any,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        name: str | None = None,
        status: OrgUnitStatus | str | None = None,
        parent_id: Any = None,
        level: int | None = None,
    ) -> Page:
        """
        Paginated, name-ordered flat listing of one tenant's units.

        Args:
            parent_id: ``None`` for no filter, ``"null"`` for root units
                only, otherwise the id of the parent.
            level: Depth filter, roots being level 1.  Levels below the
                roots are resolved by a breadth-first pass over the
                tenant's parent links, refused with
                :class:`~common.exceptions.TreeTooLargeError` above
                ``max_tree_nodes``.
        """
        tenant_id = _as_uuid(tenant_id, "tenant_id")
        if page < 1:
            raise InvalidInputError("page must be at least 1.")
        if not 1 <= page_size <= self.max_page_size:
            raise InvalidInputError(f"page_size must be between 1 and {self.max_page_size}.")
        status = OrgUnitStatus.parse(status) if status is not None else None

        roots_only = False
        parent_filter: uuid.UUID | None = None
        if parent_id == ROOT_PARENT_SENTINEL:
            roots_only = True
        elif parent_id is not None:
            parent_filter = _as_uuid(parent_id, "parent_id")

        ids = None
        if level is not None:
            if level < 1:
                raise InvalidInputError("level must be at least 1.")
            if level == 1:
                roots_only = True
            else:
                links = {uid: parent for uid, (parent, _) in self.store.list_links(tenant_id).items()}
                if len(links) > self.max_tree_nodes:
                    raise TreeTooLargeError(
                        f"Hierarchy has {len(links)} units; the level filter is "
                        f"limited to {self.max_tree_nodes}. Use parent_id instead."
                    )
                levels = compute_levels(links)
                ids = [uid for uid, depth in levels.items() if depth == level]
                logger.info(
                    "org_unit_level_filter_computed",
                    tenant_id=str(tenant_id),
                    level=level,
                    matches=len(ids),
                    scanned=len(links),
                )

        items, total = self.store.search(
            tenant_id,
            offset=(page - 1) * page_size,
            limit=page_size,
            name=name or None,
            status=status,
            parent_id=parent_filter,
            roots_only=roots_only,
            ids=ids,
        )
        return Page(items=items, total=total, page=page, page_size=page_size)

    def get_tree(
        self,
        *,
        tenant_id: Any,
        status: OrgUnitStatus | str | None = None,
    ) -> list[TreeNode]:
        """
        Whole hierarchy of a tenant, rooted at the root units.

        All units are read in one query and nested in memory, which is only
        suitable for small and medium tenants; the node budget
        (``max_tree_nodes``) turns oversized requests into
        :class:`~common.exceptions.TreeTooLargeError`.  With a *status*
        filter, descendants of filtered-out units are omitted.
        """
        tenant_id = _as_uuid(tenant_id, "tenant_id")
        status = OrgUnitStatus.parse(status) if status is not None else None
        units = self.store.list_by_tenant(tenant_id, status=status)
        logger.warning(
            "org_unit_tree_in_memory",
            tenant_id=str(tenant_id),
            status=status.value if status else "any",
            unit_count=len(units),
        )
        return build_tree(units, None, max_nodes=self.max_tree_nodes)

    def find_one(
        self,
        unit_id: Any,
        *,
        include_children: bool = False,
        tenant_id: Any = None,
    ) -> UnitDetail:
        """
        Fetch one unit, optionally with its direct children (one level only).

        When *tenant_id* is given, a unit of another tenant is reported as
        not found.
        """
        tenant_id = _optional_uuid(tenant_id, "tenant_id")
        unit = self._get_existing(unit_id, tenant_id)
        if not include_children:
            return UnitDetail(unit=unit)
        children = self.store.list_children(unit.id, tenant_id=unit.tenant_id)
        return UnitDetail(unit=unit, children=children)

    def get_effective_status(self, unit_id: Any) -> EffectiveStatus:
        """
        Resolve a unit's status against its ancestors.

        The unit is effectively ``Inactive`` when it, or any unit above it,
        is stored as ``Inactive``.  Re-activating an ancestor therefore
        restores descendants that were not deactivated themselves.

        The walk reads one parent link per level and stops at the first
        inactive unit.
        """
        unit = self._get_existing(unit_id)
        statuses = {unit.id: unit.status}

        def parent_of(node_id):
            parent_id, parent_status = self.store.get_parent_link(
                node_id, tenant_id=unit.tenant_id
            )
            if parent_id is not None:
                statuses[parent_id] = parent_status
            return parent_id

        for node_id in iter_ancestor_ids(unit.id, parent_of):
            if statuses.get(node_id) is OrgUnitStatus.INACTIVE:
                return EffectiveStatus(
                    unit_id=unit.id,
                    status=OrgUnitStatus.INACTIVE,
                    inactive_ancestor_id=node_id,
                )
        return EffectiveStatus(unit_id=unit.id, status=OrgUnitStatus.ACTIVE)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, unit_id: Any, *, data: dict) -> OrganizationUnit:
        """
        Partial update of ``name``, ``parent_id``, ``description`` and
        ``leader_user_id``.

        Only keys present in *data* are considered; an explicit ``None`` for
        ``parent_id`` moves the unit to the root and for ``leader_user_id``
        clears the leader.  Values equal to the stored ones are ignored and,
        when nothing differs, the stored unit is returned without a write.

        Steps:

        1. Fetch the unit (404 if missing) and reject self-parenting.
        2. On a parent change, check the new parent exists in the tenant and
           walk its ancestors to make sure the unit is not among them.
        3. On a name or parent change, check the name is free in the
           effective sibling group.
        4. Write the changed fields.

        Steps 2–4 run under the tenant lock when the parent changes.

        Raises:
            NotFoundError: Unit or new parent missing.
            InvalidInputError: Self-parent, cycle, unknown field, blank name.
            ConflictError: Name already taken among the new siblings.
        """
        unknown = set(data) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidInputError(
                f"Fields cannot be updated here: {', '.join(sorted(unknown))}."
            )
        existing = self._get_existing(unit_id)

        requested: dict[str, Any] = {}
        if "name" in data:
            requested["name"] = _require_name(data["name"])
        if "parent_id" in data:
            requested["parent_id"] = _optional_uuid(data["parent_id"], "parent_id")
            if requested["parent_id"] == existing.id:
                raise InvalidInputError("An organization unit cannot be its own parent.")
        if "description" in data:
            requested["description"] = data["description"] or ""
        if "leader_user_id" in data:
            requested["leader_user_id"] = _optional_uuid(data["leader_user_id"], "leader_user_id")

        changes = {
            key: value for key, value in requested.items() if getattr(existing, key) != value
        }
        if not changes:
            logger.info("org_unit_update_noop", org_unit_id=str(existing.id))
            return existing

        parent_changed = "parent_id" in changes
        effective_parent = changes["parent_id"] if parent_changed else existing.parent_id
        tenant_id = existing.tenant_id

        guard = self.store.tenant_lock(tenant_id) if parent_changed else contextlib.nullcontext()
        with guard:
            if parent_changed:
                self._validate_tenant_and_parent(tenant_id, effective_parent)
                if effective_parent is not None and would_create_cycle(
                    existing.id, effective_parent, self._parent_lookup(tenant_id)
                ):
                    raise InvalidInputError(
                        f"Circular dependency detected: cannot set '{effective_parent}' "
                        f"as parent of '{existing.id}'."
                    )
            if "name" in changes or parent_changed:
                check_name_unique(
                    self.store,
                    tenant_id,
                    changes.get("name", existing.name),
                    effective_parent,
                    exclude_id=existing.id,
                )
            updated = self.store.update(existing.id, changes)

        if updated is None:
            raise NotFoundError(f"Organization unit with id {existing.id} not found.")
        logger.info(
            "org_unit_updated",
            org_unit_id=str(existing.id),
            changes={key: str(value) if value is not None else None for key, value in changes.items()},
        )
        return updated

    def update_status(self, unit_id: Any, status: OrgUnitStatus | str) -> OrganizationUnit:
        """
        Set a unit's stored status.

        Descendants are left untouched: deactivation reaches them through
        :meth:`get_effective_status`, and activation never re-activates
        children that were deactivated on their own.
        """
        status = OrgUnitStatus.parse(status)
        existing = self._get_existing(unit_id)
        updated = self.store.update(existing.id, {"status": status})
        if updated is None:
            raise NotFoundError(f"Organization unit with id {existing.id} not found.")
        logger.info(
            "org_unit_status_updated",
            org_unit_id=str(existing.id),
            previous_status=existing.status.value,
            status=status.value,
            descendants_effectively_inactive=status is OrgUnitStatus.INACTIVE,
        )
        return updated

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def remove(self, unit_id: Any) -> None:
        """
        Delete a unit that has no child units.

        Child units block deletion (:class:`ConflictError`).  Users still
        assigned to the unit do not: the count is only logged, and their
        ``organization_unit_id`` is left pointing at the removed unit.

        Raises:
            NotFoundError: Unit missing.
            ConflictError: Unit has children.
        """
        existing = self._get_existing(unit_id)

        child_count = self.store.count_children(existing.id)
        if child_count > 0:
            raise ConflictError(
                f"Organization unit {existing.id} has {child_count} child unit(s). "
                "Cannot delete. Re-parent or delete children first."
            )

        user_count = self.user_directory(existing.id)
        if user_count > 0:
            logger.warning(
                "org_unit_delete_with_assigned_users",
                org_unit_id=str(existing.id),
                user_count=user_count,
            )

        deleted = self.store.delete(existing.id)
        if not deleted:
            raise NotFoundError(f"Organization unit with id {existing.id} not found.")
        logger.info(
            "org_unit_deleted",
            org_unit_id=str(existing.id),
            tenant_id=str(existing.tenant_id),
        )
