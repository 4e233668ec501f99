"""
apps.org_units.domain
~~~~~~~~~~~~~~~~~~~~~
Domain types for the organization unit hierarchy and the explicit mapping
between them and the ``organization_units`` storage row.

This module performs no ORM access; the storage row is only read through
its attributes, so the mapping can be exercised on unsaved model instances.

Public API
----------
OrgUnitStatus     – ``Active`` / ``Inactive`` enumeration
OrganizationUnit  – immutable domain entity
TreeNode          – transient nested view built by the tree assembler
UnitDetail        – a unit plus, optionally, its direct children
Page              – one page of a flat listing
EffectiveStatus   – status after applying the ancestor chain
to_entity(record) – storage row → entity
to_row(unit)      – entity → storage column values
"""
from __future__ import annotations

import datetime
import enum
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from common.exceptions import InvalidInputError

if TYPE_CHECKING:
    from apps.org_units.models import OrganizationUnitRecord


class OrgUnitStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"

    @classmethod
    def parse(cls, value: "OrgUnitStatus | str") -> "OrgUnitStatus":
        """Coerce *value* to a status, raising InvalidInputError when malformed."""
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise InvalidInputError(f"status must be one of: {allowed}")

    @classmethod
    def choices(cls) -> list[tuple[str, str]]:
        return [(s.value, s.value) for s in cls]


@dataclass(frozen=True)
class OrganizationUnit:
    """
    A node of a tenant's organization hierarchy.

    Attributes:
        id: Generated at creation, never changes.
        tenant_id: Owning tenant; immutable.
        name: Unique among siblings (same tenant and same parent, where all
            root units form one sibling group).
        parent_id: Parent unit in the same tenant, ``None`` for a root.
        description: Free text, empty string when not given.
        leader_user_id: Optional user reference, not validated here.
        status: Stored status.  See :class:`EffectiveStatus` for the value
            that accounts for inactive ancestors.
        created_at / updated_at: ``updated_at`` moves on every write.
    """

    id: uuid.UUID
    tenant_id: uuid.UUID
    name: str
    parent_id: uuid.UUID | None = None
    description: str = ""
    leader_user_id: uuid.UUID | None = None
    status: OrgUnitStatus = OrgUnitStatus.ACTIVE
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass
class TreeNode:
    unit: OrganizationUnit
    children: list[TreeNode] = field(default_factory=list)


@dataclass(frozen=True)
class UnitDetail:
    """A single unit; ``children`` is ``None`` unless direct children were requested."""

    unit: OrganizationUnit
    children: list[OrganizationUnit] | None = None


@dataclass(frozen=True)
class Page:
    items: list[OrganizationUnit]
    total: int
    page: int
    page_size: int


@dataclass(frozen=True)
class EffectiveStatus:
    """
    Authorization-relevant status of a unit.

    ``inactive_ancestor_id`` names the closest unit on the ancestor chain
    (the unit itself included) whose stored status is ``Inactive``.
    """

    unit_id: uuid.UUID
    status: OrgUnitStatus
    inactive_ancestor_id: uuid.UUID | None = None


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------

#: Storage columns, in table order.  Every one is produced by :func:`to_row`
#: and consumed by :func:`to_entity`.
ROW_COLUMNS: tuple[str, ...] = (
    "id",
    "tenant_id",
    "parent_id",
    "name",
    "description",
    "leader_user_id",
    "status",
    "created_at",
    "updated_at",
)


def to_entity(record: "OrganizationUnitRecord") -> OrganizationUnit:
    """Map an ``organization_units`` row onto an :class:`OrganizationUnit`."""
    return OrganizationUnit(
        id=record.id,
        tenant_id=record.tenant_id,
        name=record.name,
        parent_id=record.parent_id,
        description=record.description or "",
        leader_user_id=record.leader_user_id,
        status=OrgUnitStatus(record.status),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def to_row(unit: OrganizationUnit) -> dict[str, Any]:
    """Return the column values that persist *unit* (inverse of :func:`to_entity`)."""
    return {
        "id": unit.id,
        "tenant_id": unit.tenant_id,
        "parent_id": unit.parent_id,
        "name": unit.name,
        "description": unit.description,
        "leader_user_id": unit.leader_user_id,
        "status": unit.status.value,
        "created_at": unit.created_at,
        "updated_at": unit.updated_at,
    }
