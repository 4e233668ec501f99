"""
apps.org_units.serializers
~~~~~~~~~~~~~~~~~~~~~~~~~~
I/O-only serializers for the Organization Units API.
No business logic; shape validation only.

Read serializers render :mod:`apps.org_units.domain` dataclasses, not ORM
rows.
"""
from rest_framework import serializers

from apps.org_units.domain import OrgUnitStatus

STATUS_CHOICES = OrgUnitStatus.choices()


# ---------------------------------------------------------------------------
# Read shapes
# ---------------------------------------------------------------------------

class OrganizationUnitSerializer(serializers.Serializer):
    """Read serializer for a single :class:`~apps.org_units.domain.OrganizationUnit`."""

    id = serializers.UUIDField(read_only=True)
    tenant_id = serializers.UUIDField(read_only=True)
    name = serializers.CharField(read_only=True)
    parent_id = serializers.UUIDField(read_only=True, allow_null=True)
    description = serializers.CharField(read_only=True)
    leader_user_id = serializers.UUIDField(read_only=True, allow_null=True)
    status = serializers.CharField(read_only=True, source="status.value")
    created_at = serializers.DateTimeField(read_only=True)
    updated_at = serializers.DateTimeField(read_only=True)


class OrganizationUnitDetailSerializer(serializers.Serializer):
    """
    Response shape for GET /org-units/{id}/.

    The unit's fields at the top level; ``children`` (direct children only)
    appears when they were requested.
    """

    def to_representation(self, instance):
        data = OrganizationUnitSerializer(instance.unit).data
        if instance.children is not None:
            data["children"] = OrganizationUnitSerializer(instance.children, many=True).data
        return data


class OrganizationUnitTreeSerializer(serializers.Serializer):
    """
    Response shape for tree reads: unit fields plus a nested ``children`` list.

    Rendering walks the tree with an explicit stack so deep hierarchies do
    not exhaust the interpreter's recursion limit.
    """

    def to_representation(self, instance):
        root = dict(OrganizationUnitSerializer(instance.unit).data, children=[])
        stack = [(instance, root)]
        while stack:
            node, rendered = stack.pop()
            for child in node.children:
                rendered_child = dict(OrganizationUnitSerializer(child.unit).data, children=[])
                rendered["children"].append(rendered_child)
                stack.append((child, rendered_child))
        return root


class OrganizationUnitPageSerializer(serializers.Serializer):
    """Response shape for the paginated flat listing."""

    items = OrganizationUnitSerializer(many=True, read_only=True)
    total = serializers.IntegerField(read_only=True)
    page = serializers.IntegerField(read_only=True)
    page_size = serializers.IntegerField(read_only=True)


class EffectiveStatusSerializer(serializers.Serializer):
    unit_id = serializers.UUIDField(read_only=True)
    status = serializers.CharField(read_only=True, source="status.value")
    inactive_ancestor_id = serializers.UUIDField(read_only=True, allow_null=True)


# ---------------------------------------------------------------------------
# Request shapes
# ---------------------------------------------------------------------------

class OrganizationUnitCreateSerializer(serializers.Serializer):
    """Validates POST /org-units/ request body."""

    tenant_id = serializers.UUIDField()
    name = serializers.CharField(max_length=255)
    parent_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    leader_user_id = serializers.UUIDField(required=False, allow_null=True, default=None)


class OrganizationUnitUpdateSerializer(serializers.Serializer):
    """
    Validates PATCH /org-units/{id}/ request body.

    Used with ``partial=True``: only supplied keys reach ``validated_data``,
    and ``null`` for ``parent_id``/``leader_user_id`` clears the value.
    """

    name = serializers.CharField(max_length=255, required=False)
    parent_id = serializers.UUIDField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True)
    leader_user_id = serializers.UUIDField(required=False, allow_null=True)

    def validate(self, attrs):
        unknown = set(self.initial_data) - set(self.fields)
        if unknown:
            raise serializers.ValidationError(
                {key: "This field cannot be updated here." for key in sorted(unknown)}
            )
        return attrs


class OrganizationUnitStatusSerializer(serializers.Serializer):
    """Validates PATCH /org-units/{id}/status/ request body."""

    status = serializers.ChoiceField(
        choices=STATUS_CHOICES,
        error_messages={"invalid_choice": "status must be one of: Active, Inactive"},
    )


class OrganizationUnitQuerySerializer(serializers.Serializer):
    """Validates query parameters of GET /org-units/ and GET /org-units/tree/."""

    tenant_id = serializers.UUIDField()
    page = serializers.IntegerField(required=False, default=1, min_value=1)
    page_size = serializers.IntegerField(required=False, default=10, min_value=1, max_value=100)
    name = serializers.CharField(required=False)
    status = serializers.ChoiceField(
        choices=STATUS_CHOICES,
        required=False,
        error_messages={"invalid_choice": "status must be one of: Active, Inactive"},
    )
    parent_id = serializers.CharField(
        required=False,
        help_text="Parent unit id, or the literal 'null' for root units.",
    )
    level = serializers.IntegerField(required=False, min_value=1)
    include_children = serializers.BooleanField(required=False, default=False)


class FindOneQuerySerializer(serializers.Serializer):
    """Validates query parameters of GET /org-units/{id}/."""

    include_children = serializers.BooleanField(required=False, default=False)
    tenant_id = serializers.UUIDField(required=False)
