"""
apps.org_units.urls
~~~~~~~~~~~~~~~~~~~
URL routing for the Organization Units application.
Mounted at /api/v1/ by the root URLconf.
"""
from django.urls import path

from .views import (
    OrganizationUnitDetailView,
    OrganizationUnitEffectiveStatusView,
    OrganizationUnitListCreateView,
    OrganizationUnitStatusView,
    OrganizationUnitTreeView,
)

urlpatterns = [
    # GET, POST /api/v1/org-units/
    path(
        "org-units/",
        OrganizationUnitListCreateView.as_view(),
        name="org-unit-list-create",
    ),
    # GET /api/v1/org-units/tree/
    path(
        "org-units/tree/",
        OrganizationUnitTreeView.as_view(),
        name="org-unit-tree",
    ),
    # GET, PATCH, DELETE /api/v1/org-units/<pk>/
    path(
        "org-units/<uuid:pk>/",
        OrganizationUnitDetailView.as_view(),
        name="org-unit-detail",
    ),
    # PATCH /api/v1/org-units/<pk>/status/
    path(
        "org-units/<uuid:pk>/status/",
        OrganizationUnitStatusView.as_view(),
        name="org-unit-status",
    ),
    # GET /api/v1/org-units/<pk>/effective-status/
    path(
        "org-units/<uuid:pk>/effective-status/",
        OrganizationUnitEffectiveStatusView.as_view(),
        name="org-unit-effective-status",
    ),
]
