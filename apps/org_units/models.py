"""
apps.org_units.models
~~~~~~~~~~~~~~~~~~~~~
Storage row for organization units.

The row is never handed to callers directly: the store maps it onto
:class:`apps.org_units.domain.OrganizationUnit` via
:func:`apps.org_units.domain.to_entity`.
"""
import uuid

from django.db import models
from django.db.models import Q

from apps.tenants.models import Tenant


class OrganizationUnitRecord(models.Model):
    """
    One row of the ``organization_units`` table.

    Sibling-name uniqueness is enforced by two partial unique constraints,
    because Postgres treats NULL parents as distinct values:

    * ``org_units_tenant_parent_name_key`` – ``(tenant, parent, name)`` for
      non-root rows.
    * ``org_units_tenant_root_name_key`` – ``(tenant, name)`` for root rows.

    ``parent`` uses ``PROTECT`` so a unit that still has children can never
    be deleted, even if the service-level check is bypassed.
    """

    class Status(models.TextChoices):
        ACTIVE = "Active", "Active"
        INACTIVE = "Inactive", "Inactive"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="organization_units",
    )
    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="children",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    leader_user_id = models.UUIDField(null=True, blank=True)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.ACTIVE,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "organization_units"
        ordering = ["name"]
        verbose_name = "Organization Unit"
        verbose_name_plural = "Organization Units"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "parent", "name"],
                condition=Q(parent__isnull=False),
                name="org_units_tenant_parent_name_key",
            ),
            models.UniqueConstraint(
                fields=["tenant", "name"],
                condition=Q(parent__isnull=True),
                name="org_units_tenant_root_name_key",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "parent"], name="org_units_tenant_parent_idx"),
        ]

    def __str__(self) -> str:
        return self.name
