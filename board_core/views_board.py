# board_core/views_board.py
from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from .permissions import HasBoardRole, resolve_actor
from .selectors import BoardCache, changes_since, list_by_state, visible_entities
from .serializers import (
    BOARD_SERIALIZERS,
    ReorderRequestSerializer,
    TransitionRequestSerializer,
    WorkflowTransitionSerializer,
)
from .services.workflow_bulk import ReorderRequest, bulk_reorder, transition_entity
from .workflows import allowed_transitions, is_terminal, normalize_kind, workflow_kinds
from .workflows.errors import InvalidReorderRequest
from .workflows.rules import evaluate
from .workflows.states import KIND_STATES

logger = logging.getLogger(__name__)


# ===============================================================
# Helpers
# ===============================================================

def _kind_or_404(kind: str) -> str:
    k = normalize_kind(kind)
    if k not in workflow_kinds():
        raise NotFound(f"Unknown workflow kind: {kind}")
    return k


def _parse_int_param(request, name: str, default: int) -> int:
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError({name: "Must be an integer."})


def _build_board(kind: str, actor) -> dict:
    serializer_cls = BOARD_SERIALIZERS[kind]
    labels = dict(KIND_STATES[kind].choices)
    columns = []
    for state, entities in list_by_state(kind, actor).items():
        columns.append(
            {
                "state": state,
                "label": str(labels.get(state, state)),
                "terminal": is_terminal(kind, state),
                "items": serializer_cls(entities, many=True).data,
            }
        )
    return {"kind": kind, "columns": columns}


# ===============================================================
# Board projection
# ===============================================================

class BoardView(APIView):
    """
    GET → board columns for the caller, in lifecycle order.
    """

    permission_classes = [HasBoardRole]

    @extend_schema(tags=["Board"])
    def get(self, request, kind: str):
        k = _kind_or_404(kind)
        actor = resolve_actor(request.user)
        payload = BoardCache(k).get_or_build(actor, lambda: _build_board(k, actor))
        return Response(payload)


# ===============================================================
# Reorder (batch)
# ===============================================================

class BoardReorderView(APIView):
    """
    POST → apply a drag-and-drop batch

    Expected payload:
      {"items": [{"id": 12, "state": "CONTRACTOR_REVIEWING", "position": 0}, ...]}

    Either every item lands or none does. Failure bodies carry an "error"
    code; a forbidden batch lists each denied item under "failures".
    """

    permission_classes = [HasBoardRole]

    @extend_schema(tags=["Board"], request=ReorderRequestSerializer)
    def post(self, request, kind: str):
        k = _kind_or_404(kind)
        actor = resolve_actor(request.user)

        ser = ReorderRequestSerializer(data=request.data)
        if not ser.is_valid():
            raise InvalidReorderRequest(fields=ser.errors)

        requests = [
            ReorderRequest(id=i["id"], target_state=i["state"], position=i["position"])
            for i in ser.validated_data["items"]
        ]
        result = bulk_reorder(actor, k, requests)
        return Response(result.as_dict())


# ===============================================================
# Single-entity transition
# ===============================================================

class EntityTransitionView(APIView):
    permission_classes = [HasBoardRole]

    @extend_schema(tags=["Board"], request=TransitionRequestSerializer)
    def post(self, request, kind: str, pk: int):
        k = _kind_or_404(kind)
        actor = resolve_actor(request.user)

        ser = TransitionRequestSerializer(data=request.data)
        if not ser.is_valid():
            raise InvalidReorderRequest(fields=ser.errors)

        result = transition_entity(
            actor,
            k,
            pk,
            ser.validated_data["state"],
            ser.validated_data.get("position"),
        )
        return Response(result.as_dict())


class EntityAllowedTransitionsView(APIView):
    """
    Targets the caller could move this entity to right now. A UX hint for
    the board; the reorder endpoint re-checks everything.
    """

    permission_classes = [HasBoardRole]

    @extend_schema(tags=["Board"])
    def get(self, request, kind: str, pk: int):
        k = _kind_or_404(kind)
        actor = resolve_actor(request.user)

        entity = visible_entities(k, actor).filter(pk=pk).first()
        if entity is None:
            raise NotFound(f"{k.capitalize()} {pk} not found.")

        actor = actor.acting_on(entity)
        candidates = allowed_transitions(k, entity.state, actor.role)
        allowed = [t for t in candidates if evaluate(actor, entity, entity.state, t, kind=k)]

        return Response(
            {
                "kind": k,
                "id": entity.pk,
                "state": entity.state,
                "role": actor.role,
                "allowed": allowed,
                "terminal": is_terminal(k, entity.state),
            }
        )


# ===============================================================
# Change feed
# ===============================================================

class BoardChangesView(APIView):
    permission_classes = [HasBoardRole]

    @extend_schema(
        tags=["Board"],
        parameters=[
            OpenApiParameter("after", int, description="Return transitions after this cursor."),
            OpenApiParameter("limit", int, description="Maximum number of transitions (1-500)."),
        ],
    )
    def get(self, request, kind: str):
        k = _kind_or_404(kind)
        actor = resolve_actor(request.user)

        after = _parse_int_param(request, "after", 0)
        limit = min(max(_parse_int_param(request, "limit", 100), 1), 500)

        rows = changes_since(k, actor, after=after, limit=limit)
        return Response(
            {
                "kind": k,
                "after": after,
                "cursor": rows[-1].pk if rows else after,
                "changes": WorkflowTransitionSerializer(rows, many=True).data,
            }
        )
