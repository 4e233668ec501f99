"""
apps.users.services
~~~~~~~~~~~~~~~~~~~
User directory queries consumed by the organization unit engine.
"""
from __future__ import annotations

import uuid

from common.exceptions import database_errors
from .models import UserProfile


def count_users_by_organization_unit(
    unit_id: str | uuid.UUID,
    *,
    using: str = "default",
) -> int:
    """
    Return how many user profiles are assigned to organization unit *unit_id*.

    Database failures are raised as :class:`~common.exceptions.InternalError`.
    """
    with database_errors(f"count users of organization unit {unit_id}"):
        return UserProfile.objects.using(using).filter(organization_unit_id=unit_id).count()
