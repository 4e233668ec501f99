"""
apps.tenants.models
~~~~~~~~~~~~~~~~~~~
Tenant – isolation boundary that owns every organization unit.
"""
import uuid

from django.db import models
from django.utils.text import slugify


class Tenant(models.Model):
    """
    A customer tenant.  All hierarchy data is scoped to one tenant.

    Fields
    ------
    id
        UUID primary key, generated on creation.
    name
        Human-readable unique name (e.g. ``"Acme Corp"``).
    slug
        URL-safe version of ``name``, auto-generated on first save.
    status
        ``Active`` or ``Inactive``.
    created_at / updated_at
        Automatic timestamps.
    """

    class Status(models.TextChoices):
        ACTIVE = "Active", "Active"
        INACTIVE = "Inactive", "Inactive"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    slug = models.SlugField(
        max_length=255,
        unique=True,
        blank=True,
        help_text="URL-safe identifier auto-generated from the tenant name.",
    )
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.ACTIVE,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tenants"
        ordering = ["name"]
        verbose_name = "Tenant"
        verbose_name_plural = "Tenants"

    def save(self, *args, **kwargs) -> None:
        """Auto-populate ``slug`` on first save."""
        if not self.slug:
            self.slug = slugify(self.name)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.name
