# board_core/permissions.py
from __future__ import annotations

from rest_framework.permissions import BasePermission

from .models import UserRole
from .workflows import normalize_role
from .workflows.errors import Unauthenticated
from .workflows.rules import Actor
from .workflows.states import Role


# ------------------------------------------------------------------
# Role resolution
# ------------------------------------------------------------------
# First match wins when a user holds several roles. The guard still lets an
# account that is also a CLIENT act as one on entities where it is the client.
ROLE_PRIORITY = (Role.ADMIN, Role.CONTRACTOR, Role.CLIENT)


def user_roles(user) -> set[str]:
    if not user or not getattr(user, "is_authenticated", False):
        return set()
    roles = {
        normalize_role(r)
        for r in UserRole.objects.filter(user=user).values_list("role", flat=True)
        if r
    }
    if getattr(user, "is_superuser", False):
        roles.add(Role.ADMIN)
    return roles


def resolve_actor(user) -> Actor:
    """
    Turn a request user into the {id, role} pair the guard works with.

    Anonymous users and users without any board role cannot be placed on
    either side of an entity, so both count as an unresolvable identity.
    """
    if not user or not getattr(user, "is_authenticated", False):
        raise Unauthenticated()

    roles = user_roles(user)
    for role in ROLE_PRIORITY:
        if role in roles:
            return Actor(id=user.pk, role=str(role), roles=frozenset(str(r) for r in roles))

    raise Unauthenticated("No board role is assigned to this account.")


class HasBoardRole(BasePermission):
    """
    Lets only users with a board role through. Resolution failures are
    raised as Unauthenticated so the body carries the workflow error code.
    """

    def has_permission(self, request, view):
        resolve_actor(getattr(request, "user", None))
        return True
