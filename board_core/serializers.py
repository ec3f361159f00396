# board_core/serializers.py
from __future__ import annotations

from rest_framework import serializers

from .models import Notification, Project, Proposal, WorkflowTransition


# ===============================================================
# Reorder / transition input
# ===============================================================

class ReorderItemSerializer(serializers.Serializer):
    id = serializers.IntegerField(min_value=1)
    state = serializers.CharField(max_length=32)
    position = serializers.IntegerField(min_value=0)

    def validate_state(self, value):
        return value.strip().upper()


class ReorderRequestSerializer(serializers.Serializer):
    items = ReorderItemSerializer(many=True, allow_empty=False)


class TransitionRequestSerializer(serializers.Serializer):
    state = serializers.CharField(max_length=32)
    position = serializers.IntegerField(min_value=0, required=False, allow_null=True)

    def validate_state(self, value):
        return value.strip().upper()


# ===============================================================
# Board output
# ===============================================================

class BoardEntitySerializer(serializers.ModelSerializer):
    title = serializers.SerializerMethodField()
    client = serializers.SerializerMethodField()
    contractor = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = [
            "id",
            "title",
            "state",
            "position",
            "version",
            "client",
            "contractor",
            "last_modified_by",
            "last_transition_at",
            "updated_at",
        ]

    def get_title(self, obj):
        return str(obj)

    def _party(self, user):
        if user is None:
            return None
        return {"id": user.pk, "username": user.get_username()}

    def get_client(self, obj):
        return self._party(obj.client)

    def get_contractor(self, obj):
        return self._party(obj.contractor)


class ProjectBoardSerializer(BoardEntitySerializer):
    class Meta(BoardEntitySerializer.Meta):
        model = Project
        fields = BoardEntitySerializer.Meta.fields + ["address"]


class ProposalBoardSerializer(BoardEntitySerializer):
    class Meta(BoardEntitySerializer.Meta):
        model = Proposal
        fields = BoardEntitySerializer.Meta.fields + ["project", "amount"]


BOARD_SERIALIZERS = {
    "project": ProjectBoardSerializer,
    "proposal": ProposalBoardSerializer,
}


# ===============================================================
# Audit + inbox
# ===============================================================

class WorkflowTransitionSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(source="object_id", read_only=True)
    cursor = serializers.IntegerField(source="pk", read_only=True)
    performed_by = serializers.SerializerMethodField()

    class Meta:
        model = WorkflowTransition
        fields = [
            "cursor",
            "kind",
            "id",
            "from_state",
            "to_state",
            "from_position",
            "to_position",
            "performed_by",
            "role",
            "created_at",
        ]

    def get_performed_by(self, obj):
        user = obj.performed_by
        return user.get_username() if user else None


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "type",
            "title",
            "message",
            "entity_kind",
            "entity_id",
            "transition",
            "read",
            "created_at",
        ]
        read_only_fields = fields
