# board_core/views_workflows.py
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import extend_schema

from .workflows import workflow_definition


class WorkflowDefinitionView(APIView):
    """
    Returns the full transition table for a kind, so client-side board
    mirrors read the rules instead of re-declaring them.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Workflows"])
    def get(self, request, kind: str):
        try:
            data = workflow_definition(kind)
        except ValueError as e:
            raise NotFound(str(e))
        return Response(data)
