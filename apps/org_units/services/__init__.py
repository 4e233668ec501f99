"""
apps.org_units.services package.

:func:`build_org_unit_service` wires the service to its collaborators from
settings; :func:`get_org_unit_service` returns the instance built at
start-up by :class:`apps.org_units.apps.OrgUnitsConfig`.
"""
from __future__ import annotations

from functools import partial

from django.apps import apps as django_apps
from django.conf import settings

from apps.tenants.services import get_tenant
from apps.users.services import count_users_by_organization_unit
from .org_unit_service import OrganizationUnitService  # noqa: F401
from .store import OrganizationUnitStore  # noqa: F401


def build_org_unit_service(using: str | None = None) -> OrganizationUnitService:
    """
    Construct a service bound to *using*, or to ``settings.ORG_UNITS_DB_ALIAS``.

    The store, the tenant validator and the user directory all read the
    same alias, so the tenant row lock and the tenant check agree.
    """
    alias = using or settings.ORG_UNITS_DB_ALIAS
    return OrganizationUnitService(
        OrganizationUnitStore(using=alias),
        tenant_validator=partial(get_tenant, using=alias),
        user_directory=partial(count_users_by_organization_unit, using=alias),
        max_tree_nodes=settings.ORG_UNITS_MAX_TREE_NODES,
        max_page_size=settings.ORG_UNITS_MAX_PAGE_SIZE,
    )


def get_org_unit_service() -> OrganizationUnitService:
    return django_apps.get_app_config("org_units").service
