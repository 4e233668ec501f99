"""
tests.test_store
~~~~~~~~~~~~~~~~
Tests for the hierarchy store: error translation at the storage boundary
and the partial unique constraints backing sibling name uniqueness.
"""
from __future__ import annotations

import uuid

import pytest
from django.db import IntegrityError, OperationalError

from apps.org_units.domain import OrgUnitStatus
from apps.org_units.services.store import OrganizationUnitStore, _translate_integrity_error
from common.exceptions import (
    ConflictError,
    InternalError,
    InvalidReferenceError,
)


class _DriverError(Exception):
    def __init__(self, message: str, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


def _integrity_error(message: str, sqlstate: str | None = None) -> IntegrityError:
    exc = IntegrityError(message)
    exc.__cause__ = _DriverError(message, sqlstate)
    return exc


# ===========================================================================
# Integrity error translation (no DB)
# ===========================================================================

class TestIntegrityErrorTranslation:

    def test_unique_violation_names_the_sibling_group(self):
        exc = _integrity_error(
            'duplicate key value violates unique constraint "org_units_tenant_root_name_key"',
            sqlstate="23505",
        )
        translated = _translate_integrity_error(exc, "insert organization unit")
        assert isinstance(translated, ConflictError)
        assert "root level" in translated.detail

    def test_unique_violation_without_known_constraint(self):
        translated = _translate_integrity_error(_integrity_error("dup", "23505"), "insert")
        assert isinstance(translated, ConflictError)

    def test_sqlite_unique_message_is_recognised(self):
        exc = _integrity_error(
            "UNIQUE constraint failed: organization_units.tenant_id, organization_units.name"
        )
        assert isinstance(_translate_integrity_error(exc, "insert"), ConflictError)

    def test_foreign_key_violation_is_invalid_reference(self):
        exc = _integrity_error(
            'insert or update on table "organization_units" violates foreign key '
            'constraint "organization_units_parent_id_fkey"',
            sqlstate="23503",
        )
        translated = _translate_integrity_error(exc, "insert organization unit")
        assert isinstance(translated, InvalidReferenceError)
        assert translated.code == "invalid_reference"

    def test_other_integrity_errors_are_internal(self):
        exc = _integrity_error('null value in column "name" violates not-null', "23502")
        translated = _translate_integrity_error(exc, "insert organization unit")
        assert isinstance(translated, InternalError)
        assert "insert organization unit" in translated.detail


# ===========================================================================
# Store against the database
# ===========================================================================

@pytest.mark.django_db
class TestOrganizationUnitStore:

    def test_insert_and_get(self, store, tenant):
        unit = store.insert(tenant_id=tenant.id, name="Engineering", description="R&D")
        fetched = store.get(unit.id)
        assert fetched == unit
        assert fetched.status is OrgUnitStatus.ACTIVE
        assert store.get(unit.id, tenant_id=uuid.uuid4()) is None

    def test_duplicate_root_name_rejected_by_constraint(self, store, tenant):
        store.insert(tenant_id=tenant.id, name="Engineering")
        with pytest.raises(ConflictError):
            store.insert(tenant_id=tenant.id, name="Engineering")

    def test_duplicate_child_name_rejected_by_constraint(self, store, tenant):
        parent = store.insert(tenant_id=tenant.id, name="Engineering")
        store.insert(tenant_id=tenant.id, name="Backend", parent_id=parent.id)
        with pytest.raises(ConflictError):
            store.insert(tenant_id=tenant.id, name="Backend", parent_id=parent.id)

    def test_delete_with_children_is_conflict(self, store, tenant):
        parent = store.insert(tenant_id=tenant.id, name="Engineering")
        store.insert(tenant_id=tenant.id, name="Backend", parent_id=parent.id)
        with pytest.raises(ConflictError):
            store.delete(parent.id)
        assert store.get(parent.id) is not None

    def test_delete_missing_returns_zero(self, store):
        assert store.delete(uuid.uuid4()) == 0

    def test_get_parent_id(self, store, tenant, other_tenant):
        parent = store.insert(tenant_id=tenant.id, name="Engineering")
        child = store.insert(tenant_id=tenant.id, name="Backend", parent_id=parent.id)
        assert store.get_parent_id(child.id, tenant_id=tenant.id) == parent.id
        assert store.get_parent_id(parent.id, tenant_id=tenant.id) is None
        with pytest.raises(LookupError):
            store.get_parent_id(child.id, tenant_id=other_tenant.id)

    def test_get_parent_link_carries_parent_status(self, store, tenant, other_tenant):
        parent = store.insert(tenant_id=tenant.id, name="Engineering")
        child = store.insert(tenant_id=tenant.id, name="Backend", parent_id=parent.id)
        store.update(parent.id, {"status": OrgUnitStatus.INACTIVE})
        assert store.get_parent_link(child.id, tenant_id=tenant.id) == (
            parent.id,
            OrgUnitStatus.INACTIVE,
        )
        assert store.get_parent_link(parent.id, tenant_id=tenant.id) == (None, None)
        with pytest.raises(LookupError):
            store.get_parent_link(child.id, tenant_id=other_tenant.id)

    def test_count_siblings_named_respects_exclusion(self, store, tenant):
        unit = store.insert(tenant_id=tenant.id, name="Engineering")
        assert store.count_siblings_named(tenant.id, "Engineering", None) == 1
        assert store.count_siblings_named(tenant.id, "Engineering", None, exclude_id=unit.id) == 0
        assert store.count_siblings_named(tenant.id, "Engineering", unit.id) == 0

    def test_update_refreshes_updated_at(self, store, tenant):
        unit = store.insert(tenant_id=tenant.id, name="Engineering")
        updated = store.update(unit.id, {"status": OrgUnitStatus.INACTIVE})
        assert updated.status is OrgUnitStatus.INACTIVE
        assert updated.updated_at >= unit.updated_at
        assert store.update(uuid.uuid4(), {"name": "x"}) is None

    def test_list_links(self, store, tenant):
        parent = store.insert(tenant_id=tenant.id, name="Engineering")
        child = store.insert(tenant_id=tenant.id, name="Backend", parent_id=parent.id)
        assert store.list_links(tenant.id) == {
            parent.id: (None, OrgUnitStatus.ACTIVE),
            child.id: (parent.id, OrgUnitStatus.ACTIVE),
        }

    def test_database_errors_become_internal_errors(self, store, monkeypatch):
        def broken(self):
            raise OperationalError("connection reset")

        monkeypatch.setattr(OrganizationUnitStore, "_rows", broken)
        with pytest.raises(InternalError):
            store.ping()

    def test_tenant_lock_runs_block(self, store, tenant):
        with store.tenant_lock(tenant.id):
            unit = store.insert(tenant_id=tenant.id, name="Locked")
        assert store.get(unit.id) is not None
