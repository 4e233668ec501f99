"""
apps.users.models
~~~~~~~~~~~~~~~~~
UserProfile – tenant-scoped profile of an authenticated user.

Only the fields the organization unit engine reads are modelled here;
authentication and profile management are handled elsewhere.
"""
import uuid

from django.db import models

from apps.tenants.models import Tenant


class UserProfile(models.Model):
    """
    A user's profile within a tenant.

    ``organization_unit_id`` is a plain reference rather than a foreign key:
    deleting an organization unit leaves it dangling until the profile is
    reassigned.
    """

    class Status(models.TextChoices):
        ACTIVE = "Active", "Active"
        INACTIVE = "Inactive", "Inactive"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="user_profiles",
    )
    email = models.EmailField(max_length=255)
    first_name = models.CharField(max_length=150, blank=True, default="")
    last_name = models.CharField(max_length=150, blank=True, default="")
    organization_unit_id = models.UUIDField(null=True, blank=True, db_index=True)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.ACTIVE,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "user_profiles"
        ordering = ["email"]
        unique_together = [("tenant", "email")]
        verbose_name = "User Profile"
        verbose_name_plural = "User Profiles"

    def __str__(self) -> str:
        return self.email
