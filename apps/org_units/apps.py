"""
apps.org_units.apps
"""
import atexit

from django.apps import AppConfig


class OrgUnitsConfig(AppConfig):
    """
    Owns the process-wide :class:`OrganizationUnitService`.

    The service and its store are built once in :meth:`ready`, handed to
    views through :func:`apps.org_units.services.get_org_unit_service`, and
    the store's connection is closed at interpreter exit.
    """

    name = "apps.org_units"
    label = "org_units"
    verbose_name = "Organization Units"

    service = None

    def ready(self) -> None:
        from apps.org_units.services import build_org_unit_service  # noqa: PLC0415

        self.service = build_org_unit_service()
        atexit.register(self.service.store.close)
