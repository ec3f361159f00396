# board_core/views_identity.py
from __future__ import annotations

from rest_framework.views import APIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import UserRole
from .permissions import ROLE_PRIORITY, user_roles


class WhoAmIView(APIView):
    """
    Returns the current user, their board roles and the role the board
    engine will act with.

    The board widget uses this to:
      - confirm session auth is working
      - decide which drags to offer before asking the server
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user

        roles = sorted(
            UserRole.objects.filter(user=user).values_list("role", flat=True)
        )
        resolved = user_roles(user)
        acting = next((str(r) for r in ROLE_PRIORITY if r in resolved), None)

        return Response(
            {
                "id": user.id,
                "username": user.get_username(),
                "is_superuser": bool(getattr(user, "is_superuser", False)),
                "roles": roles,
                "acting_role": acting,
            }
        )
