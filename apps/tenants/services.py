"""
apps.tenants.services
~~~~~~~~~~~~~~~~~~~~~
Tenant lookups used by the organization unit engine.

Tenant lifecycle endpoints live outside this project; only the validator
(:func:`get_tenant`) and a creation helper for the admin and tests are
provided here.
"""
from __future__ import annotations

import uuid

import structlog
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction

from common.exceptions import ConflictError, NotFoundError, database_errors
from .models import Tenant

logger = structlog.get_logger(__name__)


def get_tenant(tenant_id: str | uuid.UUID, *, using: str = "default") -> Tenant:
    """
    Fetch a :class:`Tenant`, raising :class:`NotFoundError` if absent.

    Args:
        tenant_id: UUID (or UUID string) of the tenant.
        using: Database alias to read from.

    Returns:
        The matching ``Tenant`` instance.

    Raises:
        common.exceptions.NotFoundError: If no tenant exists with that id,
            including when *tenant_id* is not a valid UUID.
        common.exceptions.InternalError: If the database query fails.
    """
    try:
        with database_errors(f"fetch tenant {tenant_id}"):
            return Tenant.objects.using(using).get(pk=tenant_id)
    except (Tenant.DoesNotExist, DjangoValidationError, ValueError):
        logger.warning("tenant_not_found", tenant_id=str(tenant_id))
        raise NotFoundError(f"Tenant with id {tenant_id} not found.")


def create_tenant(*, name: str) -> Tenant:
    """Create a new active :class:`Tenant`; a duplicate name raises ConflictError."""
    try:
        with transaction.atomic():
            tenant = Tenant.objects.create(name=name)
    except IntegrityError as exc:
        raise ConflictError(f"A tenant named '{name}' already exists.") from exc
    logger.info("tenant_created", tenant_id=str(tenant.id), name=tenant.name)
    return tenant
