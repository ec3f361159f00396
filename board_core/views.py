# board_core/views.py
from __future__ import annotations

from django.db import DatabaseError, connection
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView


# ===============================================================
# Health
# ===============================================================
class HealthCheckView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["System"])
    def get(self, request):
        payload = {"status": "ok", "service": "roofboard"}
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
        except DatabaseError:
            payload["status"] = "degraded"
            payload["database"] = "unavailable"
            return Response(payload, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        payload["database"] = "ok"
        return Response(payload)
