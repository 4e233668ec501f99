"""
apps.org_units.services.store
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Hierarchy store: the only component that reads or writes
``organization_units`` rows.

Every method returns domain objects (:mod:`apps.org_units.domain`), never
ORM rows.  Database failures are translated at this boundary:

=============================  ===========================================
Store failure                  Raised as
=============================  ===========================================
unique violation (23505)       :class:`~common.exceptions.ConflictError`
foreign key violation (23503)  :class:`~common.exceptions.InvalidReferenceError`
protected delete               :class:`~common.exceptions.ConflictError`
any other ``DatabaseError``    :class:`~common.exceptions.InternalError`
=============================  ===========================================
"""
from __future__ import annotations

import uuid
from contextlib import contextmanager
from typing import Iterable, Iterator

import structlog
from django.db import DatabaseError, IntegrityError, connections, transaction
from django.db.models import ProtectedError
from django.utils import timezone

from apps.org_units.domain import OrganizationUnit, OrgUnitStatus, to_entity
from apps.org_units.models import OrganizationUnitRecord
from apps.tenants.models import Tenant
from common.exceptions import (
    AppError,
    ConflictError,
    InternalError,
    InvalidReferenceError,
)

logger = structlog.get_logger(__name__)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"

#: Constraint name → user-facing message for unique violations.
_UNIQUE_MESSAGES = {
    "org_units_tenant_parent_name_key": (
        "An organization unit with this name already exists under the same "
        "parent for this tenant."
    ),
    "org_units_tenant_root_name_key": (
        "An organization unit with this name already exists for this tenant "
        "at the root level."
    ),
}


def _sqlstate(exc: IntegrityError) -> str | None:
    cause = exc.__cause__
    # psycopg 3 exposes ``sqlstate``; psycopg2 exposes ``pgcode``.
    return getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)


def _translate_integrity_error(exc: IntegrityError, context: str) -> AppError:
    state = _sqlstate(exc)
    message = str(exc)
    lowered = message.lower()

    if state == UNIQUE_VIOLATION or "unique constraint" in lowered:
        for constraint, detail in _UNIQUE_MESSAGES.items():
            if constraint in message:
                return ConflictError(detail)
        return ConflictError(
            "This organization unit already exists or violates a unique constraint."
        )
    if state == FOREIGN_KEY_VIOLATION or "foreign key" in lowered:
        return InvalidReferenceError(
            f"Invalid reference: {message}. Ensure referenced tenant, parent, "
            "or leader user exist."
        )
    return InternalError(f"Integrity error in {context}: {message}")


class OrganizationUnitStore:
    """
    Store handle bound to one Django database alias.

    Instances are cheap; the process-wide one is created by
    :class:`apps.org_units.apps.OrgUnitsConfig` and closed with
    :meth:`close` on shutdown.

    Args:
        using: Database alias from ``settings.DATABASES``.
    """

    def __init__(self, using: str = "default") -> None:
        self.using = using

    def __repr__(self) -> str:
        return f"OrganizationUnitStore(using={self.using!r})"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> None:
        """Issue a trivial query; raises InternalError if the table is unreachable."""
        with self._errors("ping"):
            self._rows().exists()

    def close(self) -> None:
        connections[self.using].close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _rows(self):
        return OrganizationUnitRecord.objects.using(self.using)

    @contextmanager
    def _errors(self, context: str) -> Iterator[None]:
        try:
            yield
        except AppError:
            raise
        except ProtectedError as exc:
            raise ConflictError(
                "Organization unit still has child units. Re-parent or delete "
                "children first."
            ) from exc
        except IntegrityError as exc:
            translated = _translate_integrity_error(exc, context)
            logger.warning(
                "store_integrity_error",
                context=context,
                code=translated.code,
                error=str(exc),
            )
            raise translated from exc
        except DatabaseError as exc:
            logger.error("store_error", context=context, error=str(exc))
            raise InternalError(f"Database error in {context}: {exc}") from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(
        self,
        unit_id: uuid.UUID,
        *,
        tenant_id: uuid.UUID | None = None,
    ) -> OrganizationUnit | None:
        """Return the unit with *unit_id* (optionally within *tenant_id*) or ``None``."""
        with self._errors(f"get organization unit {unit_id}"):
            qs = self._rows().filter(pk=unit_id)
            if tenant_id is not None:
                qs = qs.filter(tenant_id=tenant_id)
            record = qs.first()
        return to_entity(record) if record is not None else None

    def get_parent_id(self, unit_id: uuid.UUID, *, tenant_id: uuid.UUID) -> uuid.UUID | None:
        """
        Return the stored parent of *unit_id* within *tenant_id*.

        Raises:
            LookupError: When the unit does not exist in that tenant.
        """
        with self._errors(f"fetch parent of {unit_id}"):
            parents = list(
                self._rows()
                .filter(pk=unit_id, tenant_id=tenant_id)
                .values_list("parent_id", flat=True)[:1]
            )
        if not parents:
            raise LookupError(unit_id)
        return parents[0]

    def get_parent_link(
        self,
        unit_id: uuid.UUID,
        *,
        tenant_id: uuid.UUID,
    ) -> tuple[uuid.UUID | None, OrgUnitStatus | None]:
        """
        Return ``(parent_id, parent_status)`` of *unit_id* in one query.

        ``parent_status`` is ``None`` for a root or a dangling parent.

        Raises:
            LookupError: When the unit does not exist in that tenant.
        """
        with self._errors(f"fetch parent link of {unit_id}"):
            links = list(
                self._rows()
                .filter(pk=unit_id, tenant_id=tenant_id)
                .values_list("parent_id", "parent__status")[:1]
            )
        if not links:
            raise LookupError(unit_id)
        parent_id, parent_status = links[0]
        return parent_id, OrgUnitStatus(parent_status) if parent_status else None

    def list_by_tenant(
        self,
        tenant_id: uuid.UUID,
        *,
        status: OrgUnitStatus | None = None,
    ) -> list[OrganizationUnit]:
        """Full-tenant scan ordered by name, used for tree assembly."""
        with self._errors(f"list organization units of tenant {tenant_id}"):
            qs = self._rows().filter(tenant_id=tenant_id)
            if status is not None:
                qs = qs.filter(status=status.value)
            return [to_entity(r) for r in qs.order_by("name", "id")]

    def list_children(
        self,
        parent_id: uuid.UUID,
        *,
        tenant_id: uuid.UUID,
    ) -> list[OrganizationUnit]:
        with self._errors(f"list children of {parent_id}"):
            qs = self._rows().filter(tenant_id=tenant_id, parent_id=parent_id)
            return [to_entity(r) for r in qs.order_by("name", "id")]

    def list_links(
        self,
        tenant_id: uuid.UUID,
    ) -> dict[uuid.UUID, tuple[uuid.UUID | None, OrgUnitStatus]]:
        """Return ``{id: (parent_id, status)}`` for every unit of the tenant."""
        with self._errors(f"list hierarchy links of tenant {tenant_id}"):
            rows = self._rows().filter(tenant_id=tenant_id).values_list(
                "id", "parent_id", "status"
            )
            return {
                unit_id: (parent_id, OrgUnitStatus(status))
                for unit_id, parent_id, status in rows
            }

    def count_children(self, parent_id: uuid.UUID) -> int:
        with self._errors(f"count children of {parent_id}"):
            return self._rows().filter(parent_id=parent_id).count()

    def count_siblings_named(
        self,
        tenant_id: uuid.UUID,
        name: str,
        parent_id: uuid.UUID | None,
        *,
        exclude_id: uuid.UUID | None = None,
    ) -> int:
        """Count units called *name* in the sibling group ``(tenant_id, parent_id)``."""
        with self._errors("check organization unit name uniqueness"):
            qs = self._rows().filter(tenant_id=tenant_id, name=name)
            if parent_id is None:
                qs = qs.filter(parent__isnull=True)
            else:
                qs = qs.filter(parent_id=parent_id)
            if exclude_id is not None:
                qs = qs.exclude(pk=exclude_id)
            return qs.count()

    def search(
        self,
        tenant_id: uuid.UUID,
        *,
        offset: int,
        limit: int,
        name: str | None = None,
        status: OrgUnitStatus | None = None,
        parent_id: uuid.UUID | None = None,
        roots_only: bool = False,
        ids: Iterable[uuid.UUID] | None = None,
    ) -> tuple[list[OrganizationUnit], int]:
        """
        Flat, name-ordered listing of one tenant's units.

        Returns:
            ``(items, total)`` where *total* counts all matches, ignoring
            *offset* and *limit*.
        """
        with self._errors("search organization units"):
            qs = self._rows().filter(tenant_id=tenant_id)
            if name:
                qs = qs.filter(name__icontains=name)
            if status is not None:
                qs = qs.filter(status=status.value)
            if roots_only:
                qs = qs.filter(parent__isnull=True)
            if parent_id is not None:
                qs = qs.filter(parent_id=parent_id)
            if ids is not None:
                qs = qs.filter(pk__in=list(ids))
            total = qs.count()
            items = [to_entity(r) for r in qs.order_by("name", "id")[offset:offset + limit]]
        return items, total

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(
        self,
        *,
        tenant_id: uuid.UUID,
        name: str,
        parent_id: uuid.UUID | None = None,
        description: str = "",
        leader_user_id: uuid.UUID | None = None,
    ) -> OrganizationUnit:
        """Insert a new unit; status is always ``Active``."""
        with self._errors("insert organization unit"), transaction.atomic(using=self.using):
            record = self._rows().create(
                tenant_id=tenant_id,
                parent_id=parent_id,
                name=name,
                description=description or "",
                leader_user_id=leader_user_id,
                status=OrgUnitStatus.ACTIVE.value,
            )
        return to_entity(record)

    def update(self, unit_id: uuid.UUID, changes: dict) -> OrganizationUnit | None:
        """
        Write *changes* (column → value) and refresh ``updated_at``.

        ``status`` may be given as :class:`OrgUnitStatus`.  Returns the
        updated unit, or ``None`` if the row disappeared meanwhile.
        """
        values = {
            key: (value.value if isinstance(value, OrgUnitStatus) else value)
            for key, value in changes.items()
        }
        values["updated_at"] = timezone.now()
        with self._errors(f"update organization unit {unit_id}"), transaction.atomic(
            using=self.using
        ):
            updated = self._rows().filter(pk=unit_id).update(**values)
        if not updated:
            return None
        return self.get(unit_id)

    def delete(self, unit_id: uuid.UUID) -> int:
        """Delete one unit; returns the number of rows removed."""
        with self._errors(f"delete organization unit {unit_id}"), transaction.atomic(
            using=self.using
        ):
            deleted, _ = self._rows().filter(pk=unit_id).delete()
        return deleted

    @contextmanager
    def tenant_lock(self, tenant_id: uuid.UUID) -> Iterator[None]:
        """
        Run the enclosed block in a transaction holding the tenant row lock.

        Concurrent re-parent operations in one tenant are serialised this
        way, so two moves cannot together close a cycle.
        """
        with transaction.atomic(using=self.using):
            with self._errors(f"lock tenant {tenant_id}"):
                list(
                    Tenant.objects.using(self.using)
                    .select_for_update()
                    .filter(pk=tenant_id)
                    .values_list("pk", flat=True)
                )
            yield
