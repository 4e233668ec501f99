"""
apps.org_units.views
~~~~~~~~~~~~~~~~~~~~
Thin DRF API views for organization units.
All business logic is delegated to
:class:`apps.org_units.services.org_unit_service.OrganizationUnitService`.

Endpoints
---------
POST   /org-units/                         – Create unit
GET    /org-units/?tenant_id=…             – Paginated flat listing (or tree)
GET    /org-units/tree/?tenant_id=…        – Full tenant tree
GET    /org-units/{id}/                    – Single unit (+ direct children)
PATCH  /org-units/{id}/                    – Partial update / re-parent
DELETE /org-units/{id}/                    – Delete childless unit
PATCH  /org-units/{id}/status/             – Status transition
GET    /org-units/{id}/effective-status/   – Status including ancestors
"""
from __future__ import annotations

import uuid

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.org_units.services import get_org_unit_service
from .serializers import (
    EffectiveStatusSerializer,
    FindOneQuerySerializer,
    OrganizationUnitCreateSerializer,
    OrganizationUnitDetailSerializer,
    OrganizationUnitPageSerializer,
    OrganizationUnitQuerySerializer,
    OrganizationUnitSerializer,
    OrganizationUnitStatusSerializer,
    OrganizationUnitTreeSerializer,
    OrganizationUnitUpdateSerializer,
)

TAGS = ["Organization Units"]


def _render_tree(nodes) -> list:
    return OrganizationUnitTreeSerializer(nodes, many=True).data


class OrganizationUnitListCreateView(APIView):
    """GET /org-units/  –  POST /org-units/"""

    @extend_schema(
        summary="List Organization Units",
        description=(
            "Paginated flat listing of one tenant's units ordered by name. "
            "parent_id=null selects root units.  With include_children=true "
            "and no parent_id, level or name filter, the whole tenant tree is "
            "returned instead."
        ),
        parameters=[OrganizationUnitQuerySerializer],
        responses={
            200: OrganizationUnitPageSerializer,
            400: OpenApiResponse(description="Invalid query parameters."),
        },
        tags=TAGS,
    )
    def get(self, request: Request) -> Response:
        query = OrganizationUnitQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        vd = query.validated_data
        service = get_org_unit_service()

        wants_tree = vd["include_children"] and not any(
            key in vd for key in ("parent_id", "level", "name")
        )
        if wants_tree:
            nodes = service.get_tree(tenant_id=vd["tenant_id"], status=vd.get("status"))
            return Response(_render_tree(nodes))

        result = service.find_all(
            tenant_id=vd["tenant_id"],
            page=vd["page"],
            page_size=vd["page_size"],
            name=vd.get("name"),
            status=vd.get("status"),
            parent_id=vd.get("parent_id"),
            level=vd.get("level"),
        )
        return Response(OrganizationUnitPageSerializer(result).data)

    @extend_schema(
        summary="Create Organization Unit",
        description="Creates an Active unit under the given parent, or at the root.",
        request=OrganizationUnitCreateSerializer,
        responses={
            201: OrganizationUnitSerializer,
            400: OpenApiResponse(description="Validation error or invalid reference."),
            404: OpenApiResponse(description="Tenant or parent not found."),
            409: OpenApiResponse(description="A sibling with that name already exists."),
        },
        tags=TAGS,
    )
    def post(self, request: Request) -> Response:
        serializer = OrganizationUnitCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        vd = serializer.validated_data
        unit = get_org_unit_service().create(
            tenant_id=vd["tenant_id"],
            name=vd["name"],
            parent_id=vd["parent_id"],
            description=vd["description"],
            leader_user_id=vd["leader_user_id"],
        )
        return Response(
            OrganizationUnitSerializer(unit).data,
            status=status.HTTP_201_CREATED,
        )


class OrganizationUnitTreeView(APIView):
    """GET /org-units/tree/ – nested hierarchy of one tenant."""

    @extend_schema(
        summary="Get Organization Unit Tree",
        description=(
            "All units of the tenant nested under their parents.  Assembled "
            "in memory; refused with tree_too_large above the node budget."
        ),
        parameters=[
            OpenApiParameter("tenant_id", uuid.UUID, required=True),
            OpenApiParameter("status", str, enum=["Active", "Inactive"]),
        ],
        responses={
            200: OrganizationUnitTreeSerializer(many=True),
            400: OpenApiResponse(description="Invalid query or tree too large."),
        },
        tags=TAGS,
    )
    def get(self, request: Request) -> Response:
        query = OrganizationUnitQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        vd = query.validated_data
        nodes = get_org_unit_service().get_tree(
            tenant_id=vd["tenant_id"], status=vd.get("status")
        )
        return Response(_render_tree(nodes))


class OrganizationUnitDetailView(APIView):
    """GET / PATCH / DELETE /org-units/<pk>/"""

    @extend_schema(
        summary="Get Organization Unit",
        parameters=[FindOneQuerySerializer],
        responses={
            200: OrganizationUnitDetailSerializer,
            404: OpenApiResponse(description="Unit not found."),
        },
        tags=TAGS,
    )
    def get(self, request: Request, pk: uuid.UUID) -> Response:
        query = FindOneQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        detail = get_org_unit_service().find_one(
            pk,
            include_children=query.validated_data["include_children"],
            tenant_id=query.validated_data.get("tenant_id"),
        )
        return Response(OrganizationUnitDetailSerializer(detail).data)

    @extend_schema(
        summary="Update Organization Unit",
        description=(
            "Partial update.  parent_id=null moves the unit to the root; "
            "leader_user_id=null clears the leader."
        ),
        request=OrganizationUnitUpdateSerializer,
        responses={
            200: OrganizationUnitSerializer,
            400: OpenApiResponse(description="Self-parent, cycle or invalid input."),
            404: OpenApiResponse(description="Unit or new parent not found."),
            409: OpenApiResponse(description="Name already used by a sibling."),
        },
        tags=TAGS,
    )
    def patch(self, request: Request, pk: uuid.UUID) -> Response:
        serializer = OrganizationUnitUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        unit = get_org_unit_service().update(pk, data=dict(serializer.validated_data))
        return Response(OrganizationUnitSerializer(unit).data)

    @extend_schema(
        summary="Delete Organization Unit",
        responses={
            204: None,
            404: OpenApiResponse(description="Unit not found."),
            409: OpenApiResponse(description="Unit still has child units."),
        },
        tags=TAGS,
    )
    def delete(self, request: Request, pk: uuid.UUID) -> Response:
        get_org_unit_service().remove(pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class OrganizationUnitStatusView(APIView):
    """PATCH /org-units/<pk>/status/"""

    @extend_schema(
        summary="Update Organization Unit Status",
        description=(
            "Sets the unit's own status.  Descendants keep their stored "
            "status; use effective-status to account for ancestors."
        ),
        request=OrganizationUnitStatusSerializer,
        responses={
            200: OrganizationUnitSerializer,
            400: OpenApiResponse(description="Malformed status."),
            404: OpenApiResponse(description="Unit not found."),
        },
        tags=TAGS,
    )
    def patch(self, request: Request, pk: uuid.UUID) -> Response:
        serializer = OrganizationUnitStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        unit = get_org_unit_service().update_status(pk, serializer.validated_data["status"])
        return Response(OrganizationUnitSerializer(unit).data)


class OrganizationUnitEffectiveStatusView(APIView):
    """GET /org-units/<pk>/effective-status/"""

    @extend_schema(
        summary="Get Effective Status",
        description="Inactive when the unit or any of its ancestors is Inactive.",
        responses={
            200: EffectiveStatusSerializer,
            404: OpenApiResponse(description="Unit not found."),
        },
        tags=TAGS,
    )
    def get(self, request: Request, pk: uuid.UUID) -> Response:
        result = get_org_unit_service().get_effective_status(pk)
        return Response(EffectiveStatusSerializer(result).data)
