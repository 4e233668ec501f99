"""
Shared fixtures for the org_units_service test suite.
"""
from __future__ import annotations

import pytest
from rest_framework.test import APIClient

from apps.org_units.services import OrganizationUnitService, OrganizationUnitStore
from apps.tenants.models import Tenant
from apps.tenants.services import create_tenant, get_tenant
from apps.users.services import count_users_by_organization_unit


@pytest.fixture
def tenant(db) -> Tenant:
    """The main tenant most tests work in ("T1")."""
    return create_tenant(name="Tenant One")


@pytest.fixture
def other_tenant(db) -> Tenant:
    return create_tenant(name="Tenant Two")


@pytest.fixture
def store(db) -> OrganizationUnitStore:
    return OrganizationUnitStore()


@pytest.fixture
def service(store) -> OrganizationUnitService:
    """A service wired to the real tenant validator and user directory."""
    return OrganizationUnitService(
        store,
        tenant_validator=get_tenant,
        user_directory=count_users_by_organization_unit,
        max_tree_nodes=50,
    )


@pytest.fixture
def api_client() -> APIClient:
    """Return an unauthenticated DRF APIClient."""
    return APIClient()
