"""
tests.test_org_unit_service
~~~~~~~~~~~~~~~~~~~~~~~~~~~
pytest-django tests for :class:`OrganizationUnitService` against the test
database.

Covers:
- Create           (tenant/parent validation, sibling uniqueness)
- Update           (re-parenting, cycles, no-op writes, field rules)
- Remove           (children block, assigned users only warn)
- Reads            (find_all filters and paging, tree, find_one)
- Effective status
"""
from __future__ import annotations

import uuid

import pytest
from django.db import DatabaseError, connection

from apps.org_units.domain import OrgUnitStatus
from apps.org_units.services import OrganizationUnitService, build_org_unit_service
from apps.org_units.services.tree_assembler import flatten_tree
from apps.users.models import UserProfile
from common.exceptions import (
    ConflictError,
    InternalError,
    InvalidInputError,
    NotFoundError,
    TreeTooLargeError,
)

pytestmark = pytest.mark.django_db


def fail_queries_on(table: str):
    """Make every SQL statement touching *table* fail like a dropped connection."""

    def wrapper(execute, sql, params, many, context):
        if f'"{table}"' in sql:
            raise DatabaseError("connection reset")
        return execute(sql, params, many, context)

    return connection.execute_wrapper(wrapper)


@pytest.fixture
def engineering(service, tenant):
    return service.create(tenant_id=tenant.id, name="Engineering")


@pytest.fixture
def backend(service, tenant, engineering):
    return service.create(tenant_id=tenant.id, name="Backend", parent_id=engineering.id)


@pytest.fixture
def sales(service, tenant):
    return service.create(tenant_id=tenant.id, name="Sales")


# ===========================================================================
# End-to-end lifecycle
# ===========================================================================

class TestHierarchyLifecycle:

    def test_create_conflict_cycle_move_and_remove(self, service, tenant):
        engineering = service.create(tenant_id=tenant.id, name="Engineering")
        backend = service.create(
            tenant_id=tenant.id, name="Backend", parent_id=engineering.id
        )
        assert engineering.is_root
        assert backend.parent_id == engineering.id
        assert backend.status is OrgUnitStatus.ACTIVE

        with pytest.raises(ConflictError):
            service.create(tenant_id=tenant.id, name="Backend", parent_id=engineering.id)

        with pytest.raises(InvalidInputError) as exc_info:
            service.update(engineering.id, data={"parent_id": backend.id})
        assert "Circular dependency detected" in exc_info.value.detail

        moved = service.update(backend.id, data={"parent_id": None})
        assert moved.parent_id is None

        service.remove(engineering.id)
        with pytest.raises(NotFoundError):
            service.find_one(engineering.id)
        assert service.find_one(backend.id).unit.is_root


# ===========================================================================
# Create
# ===========================================================================

class TestCreate:

    def test_defaults(self, service, tenant):
        unit = service.create(tenant_id=tenant.id, name="Finance")
        assert unit.description == ""
        assert unit.leader_user_id is None
        assert unit.created_at is not None
        assert unit.tenant_id == tenant.id

    def test_same_name_allowed_under_different_parents(self, service, tenant, engineering, sales):
        a = service.create(tenant_id=tenant.id, name="Operations", parent_id=engineering.id)
        b = service.create(tenant_id=tenant.id, name="Operations", parent_id=sales.id)
        assert a.id != b.id

    def test_duplicate_root_name_is_conflict(self, service, tenant, engineering):
        with pytest.raises(ConflictError) as exc_info:
            service.create(tenant_id=tenant.id, name="Engineering")
        assert "root level" in exc_info.value.detail

    def test_same_root_name_allowed_in_other_tenant(self, service, engineering, other_tenant):
        unit = service.create(tenant_id=other_tenant.id, name="Engineering")
        assert unit.tenant_id == other_tenant.id

    def test_unknown_tenant_is_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.create(tenant_id=uuid.uuid4(), name="Ghost")

    def test_missing_parent_is_not_found(self, service, tenant):
        missing = uuid.uuid4()
        with pytest.raises(NotFoundError) as exc_info:
            service.create(tenant_id=tenant.id, name="Orphan", parent_id=missing)
        assert str(missing) in exc_info.value.detail

    def test_parent_in_other_tenant_is_not_found(self, service, engineering, other_tenant):
        with pytest.raises(NotFoundError):
            service.create(tenant_id=other_tenant.id, name="Leak", parent_id=engineering.id)

    @pytest.mark.parametrize("name", ["", "   "])
    def test_blank_name_is_invalid(self, service, tenant, name):
        with pytest.raises(InvalidInputError):
            service.create(tenant_id=tenant.id, name=name)

    def test_malformed_parent_id_is_invalid(self, service, tenant):
        with pytest.raises(InvalidInputError):
            service.create(tenant_id=tenant.id, name="X", parent_id="not-a-uuid")


# ===========================================================================
# Update
# ===========================================================================

class TestUpdate:

    def test_rename(self, service, engineering):
        renamed = service.update(engineering.id, data={"name": "R&D"})
        assert renamed.name == "R&D"
        assert renamed.updated_at >= engineering.updated_at

    def test_noop_update_does_not_write(self, service, engineering):
        result = service.update(
            engineering.id,
            data={"name": "Engineering", "description": "", "parent_id": None},
        )
        assert result == engineering
        assert service.find_one(engineering.id).unit.updated_at == engineering.updated_at

    def test_self_parent_is_invalid(self, service, engineering):
        with pytest.raises(InvalidInputError) as exc_info:
            service.update(engineering.id, data={"parent_id": engineering.id})
        assert "own parent" in exc_info.value.detail

    def test_deep_cycle_is_invalid(self, service, tenant, engineering, backend):
        payments = service.create(tenant_id=tenant.id, name="Payments", parent_id=backend.id)
        with pytest.raises(InvalidInputError):
            service.update(engineering.id, data={"parent_id": payments.id})
        assert service.find_one(engineering.id).unit.parent_id is None

    def test_move_under_sibling_subtree(self, service, engineering, backend, sales):
        moved = service.update(backend.id, data={"parent_id": sales.id})
        assert moved.parent_id == sales.id

    def test_parent_in_other_tenant_is_not_found(self, service, engineering, other_tenant):
        foreign = service.create(tenant_id=other_tenant.id, name="Foreign")
        with pytest.raises(NotFoundError):
            service.update(engineering.id, data={"parent_id": foreign.id})

    def test_move_into_group_with_same_name_is_conflict(self, service, tenant, engineering, sales):
        service.create(tenant_id=tenant.id, name="Support", parent_id=sales.id)
        support = service.create(tenant_id=tenant.id, name="Support", parent_id=engineering.id)
        with pytest.raises(ConflictError):
            service.update(support.id, data={"parent_id": sales.id})

    def test_rename_to_sibling_name_is_conflict(self, service, engineering, sales):
        with pytest.raises(ConflictError):
            service.update(sales.id, data={"name": "Engineering"})

    def test_unknown_field_is_invalid(self, service, engineering):
        with pytest.raises(InvalidInputError):
            service.update(engineering.id, data={"tenant_id": uuid.uuid4()})

    def test_status_is_not_updatable_here(self, service, engineering):
        with pytest.raises(InvalidInputError):
            service.update(engineering.id, data={"status": "Inactive"})

    def test_blank_name_is_invalid(self, service, engineering):
        with pytest.raises(InvalidInputError):
            service.update(engineering.id, data={"name": " "})

    def test_leader_can_be_set_and_cleared(self, service, engineering):
        leader = uuid.uuid4()
        assert service.update(engineering.id, data={"leader_user_id": leader}).leader_user_id == leader
        assert service.update(engineering.id, data={"leader_user_id": None}).leader_user_id is None

    def test_missing_unit_is_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.update(uuid.uuid4(), data={"name": "X"})


class TestUpdateStatus:

    def test_deactivate_leaves_children_untouched(self, service, engineering, backend):
        updated = service.update_status(engineering.id, "Inactive")
        assert updated.status is OrgUnitStatus.INACTIVE
        assert service.find_one(backend.id).unit.status is OrgUnitStatus.ACTIVE

    def test_malformed_status_is_invalid(self, service, engineering):
        with pytest.raises(InvalidInputError):
            service.update_status(engineering.id, "Archived")

    def test_missing_unit_is_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.update_status(uuid.uuid4(), OrgUnitStatus.INACTIVE)


# ===========================================================================
# Remove
# ===========================================================================

class TestRemove:

    def test_unit_with_children_is_conflict(self, service, engineering, backend):
        with pytest.raises(ConflictError) as exc_info:
            service.remove(engineering.id)
        assert "1 child unit(s)" in exc_info.value.detail

    def test_assigned_users_do_not_block_deletion(self, store, tenant, engineering):
        calls = []

        def user_directory(unit_id):
            calls.append(unit_id)
            return UserProfile.objects.filter(organization_unit_id=unit_id).count()

        service = OrganizationUnitService(
            store,
            tenant_validator=lambda tenant_id: tenant,
            user_directory=user_directory,
        )
        profile = UserProfile.objects.create(
            tenant=tenant,
            email="ada@example.com",
            organization_unit_id=engineering.id,
        )

        service.remove(engineering.id)

        assert calls == [engineering.id]
        profile.refresh_from_db()
        assert profile.organization_unit_id == engineering.id
        assert store.get(engineering.id) is None

    def test_missing_unit_is_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.remove(uuid.uuid4())


# ===========================================================================
# Reads
# ===========================================================================

class TestFindAll:

    def test_parent_null_returns_only_roots(self, service, tenant, engineering, backend, sales):
        page = service.find_all(tenant_id=tenant.id, parent_id="null")
        assert [u.name for u in page.items] == ["Engineering", "Sales"]
        assert all(u.parent_id is None for u in page.items)
        assert page.total == 2

    def test_parent_filter(self, service, tenant, engineering, backend):
        page = service.find_all(tenant_id=tenant.id, parent_id=str(engineering.id))
        assert [u.id for u in page.items] == [backend.id]

    def test_scoped_to_tenant(self, service, tenant, engineering, other_tenant):
        service.create(tenant_id=other_tenant.id, name="Elsewhere")
        page = service.find_all(tenant_id=tenant.id)
        assert {u.tenant_id for u in page.items} == {tenant.id}

    def test_name_filter_is_case_insensitive_substring(self, service, tenant, engineering, backend):
        page = service.find_all(tenant_id=tenant.id, name="END")
        assert [u.name for u in page.items] == ["Backend"]

    def test_status_filter(self, service, tenant, engineering, sales):
        service.update_status(sales.id, OrgUnitStatus.INACTIVE)
        page = service.find_all(tenant_id=tenant.id, status="Inactive")
        assert [u.id for u in page.items] == [sales.id]

    def test_level_filter(self, service, tenant, engineering, backend, sales):
        payments = service.create(tenant_id=tenant.id, name="Payments", parent_id=backend.id)
        assert [u.id for u in service.find_all(tenant_id=tenant.id, level=2).items] == [backend.id]
        assert [u.id for u in service.find_all(tenant_id=tenant.id, level=3).items] == [payments.id]
        assert service.find_all(tenant_id=tenant.id, level=4).total == 0
        roots = service.find_all(tenant_id=tenant.id, level=1).items
        assert {u.id for u in roots} == {engineering.id, sales.id}

    def test_pagination(self, service, tenant):
        for i in range(5):
            service.create(tenant_id=tenant.id, name=f"Team {i}")
        page = service.find_all(tenant_id=tenant.id, page=2, page_size=2)
        assert [u.name for u in page.items] == ["Team 2", "Team 3"]
        assert page.total == 5
        assert (page.page, page.page_size) == (2, 2)

    def test_level_filter_respects_node_budget(self, store, tenant):
        small = OrganizationUnitService(
            store,
            tenant_validator=lambda tenant_id: tenant,
            user_directory=lambda unit_id: 0,
            max_tree_nodes=2,
        )
        root = small.create(tenant_id=tenant.id, name="Root")
        for name in ("A", "B"):
            small.create(tenant_id=tenant.id, name=name, parent_id=root.id)
        with pytest.raises(TreeTooLargeError):
            small.find_all(tenant_id=tenant.id, level=2)
        assert small.find_all(tenant_id=tenant.id, level=1).total == 1

    @pytest.mark.parametrize("kwargs", [{"page": 0}, {"page_size": 0}, {"page_size": 101}, {"level": 0}])
    def test_invalid_paging_and_level(self, service, tenant, kwargs):
        with pytest.raises(InvalidInputError):
            service.find_all(tenant_id=tenant.id, **kwargs)

    def test_malformed_parent_id_is_invalid(self, service, tenant):
        with pytest.raises(InvalidInputError):
            service.find_all(tenant_id=tenant.id, parent_id="nope")


class TestGetTree:

    def test_tree_flattens_to_full_listing(self, service, tenant, engineering, backend, sales):
        service.create(tenant_id=tenant.id, name="Payments", parent_id=backend.id)
        tree = service.get_tree(tenant_id=tenant.id)
        listing = service.find_all(tenant_id=tenant.id, page_size=100)
        assert {u.id for u in flatten_tree(tree)} == {u.id for u in listing.items}
        assert [n.unit.name for n in tree] == ["Engineering", "Sales"]
        assert tree[0].children[0].unit.id == backend.id

    def test_status_filter_prunes_inactive_branches(self, service, tenant, engineering, backend, sales):
        service.update_status(engineering.id, "Inactive")
        tree = service.get_tree(tenant_id=tenant.id, status="Active")
        assert [u.name for u in flatten_tree(tree)] == ["Sales"]

    def test_node_budget(self, store, tenant):
        small = OrganizationUnitService(
            store,
            tenant_validator=lambda tenant_id: tenant,
            user_directory=lambda unit_id: 0,
            max_tree_nodes=2,
        )
        for name in ("A", "B", "C"):
            small.create(tenant_id=tenant.id, name=name)
        with pytest.raises(TreeTooLargeError):
            small.get_tree(tenant_id=tenant.id)

    def test_empty_tenant(self, service, tenant):
        assert service.get_tree(tenant_id=tenant.id) == []


class TestFindOne:

    def test_without_children(self, service, engineering, backend):
        detail = service.find_one(engineering.id)
        assert detail.unit == engineering
        assert detail.children is None

    def test_with_direct_children_only(self, service, tenant, engineering, backend):
        service.create(tenant_id=tenant.id, name="Payments", parent_id=backend.id)
        detail = service.find_one(engineering.id, include_children=True)
        assert [c.id for c in detail.children] == [backend.id]

    def test_other_tenant_scope_is_not_found(self, service, engineering, other_tenant):
        with pytest.raises(NotFoundError):
            service.find_one(engineering.id, tenant_id=other_tenant.id)

    def test_malformed_id_is_invalid(self, service):
        with pytest.raises(InvalidInputError):
            service.find_one("abc")


class TestEffectiveStatus:

    def test_active_chain(self, service, backend):
        result = service.get_effective_status(backend.id)
        assert result.status is OrgUnitStatus.ACTIVE
        assert result.inactive_ancestor_id is None

    def test_inactive_ancestor_propagates(self, service, tenant, engineering, backend):
        payments = service.create(tenant_id=tenant.id, name="Payments", parent_id=backend.id)
        service.update_status(engineering.id, "Inactive")
        result = service.get_effective_status(payments.id)
        assert result.status is OrgUnitStatus.INACTIVE
        assert result.inactive_ancestor_id == engineering.id

    def test_closest_inactive_unit_is_reported(self, service, engineering, backend):
        service.update_status(engineering.id, "Inactive")
        service.update_status(backend.id, "Inactive")
        assert service.get_effective_status(backend.id).inactive_ancestor_id == backend.id

    def test_reactivating_ancestor_restores_descendants(self, service, engineering, backend):
        service.update_status(engineering.id, "Inactive")
        service.update_status(engineering.id, "Active")
        assert service.get_effective_status(backend.id).status is OrgUnitStatus.ACTIVE

    def test_walk_reads_links_not_the_whole_tenant(self, service, store, tenant, backend, monkeypatch):
        def full_scan(tenant_id):
            raise AssertionError("effective status must not scan the tenant")

        monkeypatch.setattr(store, "list_links", full_scan)
        assert service.get_effective_status(backend.id).status is OrgUnitStatus.ACTIVE


# ===========================================================================
# Collaborator failures and wiring
# ===========================================================================

class TestCollaboratorFailures:

    def test_tenant_lookup_failure_is_internal_error(self, service, tenant):
        with fail_queries_on("tenants"), pytest.raises(InternalError) as exc_info:
            service.create(tenant_id=tenant.id, name="Engineering")
        assert "connection reset" in exc_info.value.detail

    def test_user_directory_failure_is_internal_error(self, service, engineering):
        with fail_queries_on("user_profiles"), pytest.raises(InternalError):
            service.remove(engineering.id)
        assert service.find_one(engineering.id).unit == engineering

    def test_collaborators_share_the_store_alias(self, settings):
        settings.ORG_UNITS_DB_ALIAS = "default"
        built = build_org_unit_service()
        assert built.store.using == "default"
        assert built.tenant_validator.keywords == {"using": "default"}
        assert built.user_directory.keywords == {"using": "default"}
