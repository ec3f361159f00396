"""
Authoritative transition guard for board entities.

Single source of truth consulted before any board mutation:
- who the caller is relative to the entity (client / contractor / stranger)
- whether the requested state change exists in the transition table
- which side of the relationship may perform it

`evaluate` is pure. It reads only its arguments and the immutable tables in
board_core.workflows, so a batch of any size gets the same verdict per item
as a single request would.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, FrozenSet, Optional

from board_core.workflows import (
    AWAITING_RESPONSE_STATES,
    CLIENT_REQUIRED_STATES,
    RESPONSE_STATES,
    Role,
    allowed_targets,
    is_contractor_role,
    normalize_kind,
    normalize_role,
    normalize_state,
    required_roles,
)


ACCESS_DENIED = "access_denied"
INVALID_TRANSITION = "invalid_transition"
TERMINAL_STATE = "terminal_state"
MISSING_COUNTERPARTY = "missing_counterparty"


@dataclass(frozen=True)
class Actor:
    """
    Caller as the guard sees it. `role` is the acting role; `roles` holds
    every board role of the account, when it has more than one.
    """

    id: Any
    role: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_client(self) -> bool:
        return normalize_role(self.role) == Role.CLIENT

    @property
    def is_contractor(self) -> bool:
        return is_contractor_role(self.role)

    def acting_on(self, entity) -> "Actor":
        """
        The actor with the role that fits its side of `entity`.

        An account holding both a contractor-side role and CLIENT acts as
        CLIENT on entities where it is only the client.
        """
        if self.is_client or Role.CLIENT not in {normalize_role(r) for r in self.roles}:
            return self
        on_client_side = getattr(entity, "client_id", None) == self.id
        on_contractor_side = getattr(entity, "contractor_id", None) == self.id
        if on_client_side and not on_contractor_side:
            return replace(self, role=str(Role.CLIENT))
        return self


@dataclass(frozen=True)
class Verdict:
    allowed: bool
    reason: Optional[str] = None
    detail: str = ""

    @classmethod
    def allow(cls) -> "Verdict":
        return cls(True)

    @classmethod
    def deny(cls, reason: str, detail: str = "") -> "Verdict":
        return cls(False, reason, detail)

    def __bool__(self) -> bool:
        return self.allowed


def _entity_kind(entity, kind: Optional[str]) -> str:
    return normalize_kind(kind or getattr(entity, "WORKFLOW_KIND", ""))


def evaluate(
    actor: Actor,
    entity,
    from_state: str,
    to_state: str,
    *,
    kind: Optional[str] = None,
) -> Verdict:
    """
    Decide whether `actor` may move `entity` from `from_state` to `to_state`.

    Order of checks:
    1) identity: the actor must be the entity's client or contractor
    2) same-state request: a pure reorder, allowed in every state
       (terminal columns included, for display ordering)
    3) absorbing state: nothing leaves a terminal state
    4) role rules: clients only answer a pending proposal, contractors
       must own the entity and follow the transition table
    """
    actor = actor.acting_on(entity)
    k = _entity_kind(entity, kind)
    cur = normalize_state(from_state)
    tgt = normalize_state(to_state)

    client_id = getattr(entity, "client_id", None)
    contractor_id = getattr(entity, "contractor_id", None)

    is_entity_client = client_id is not None and client_id == actor.id
    is_entity_contractor = contractor_id is not None and contractor_id == actor.id

    # 1) Identity
    if not (is_entity_client or is_entity_contractor):
        return Verdict.deny(ACCESS_DENIED, "You are neither the client nor the contractor of this entity.")

    # 2) Pure reorder
    if cur == tgt:
        return Verdict.allow()

    # 3) Absorbing states
    try:
        targets = allowed_targets(k, cur)
    except ValueError as exc:
        return Verdict.deny(INVALID_TRANSITION, str(exc))

    if not targets:
        return Verdict.deny(TERMINAL_STATE, f"{k.capitalize()} is in terminal state '{cur}'.")

    # 4) Role rules
    if actor.is_client:
        if not is_entity_client:
            return Verdict.deny(ACCESS_DENIED, "Only the entity's client may respond to it.")
        if cur not in AWAITING_RESPONSE_STATES.get(k, ()) or tgt not in RESPONSE_STATES:
            return Verdict.deny(INVALID_TRANSITION, f"Clients cannot move a {k} from {cur} to {tgt}.")
        if contractor_id is None:
            return Verdict.deny(MISSING_COUNTERPARTY, f"{k.capitalize()} must be assigned to a contractor.")
        return Verdict.allow()

    if actor.is_contractor:
        if not is_entity_contractor:
            return Verdict.deny(ACCESS_DENIED, "Only the assigned contractor may move this entity.")
        if tgt not in targets:
            return Verdict.deny(INVALID_TRANSITION, f"Invalid {k} transition: {cur} -> {tgt}.")
        if normalize_role(actor.role) not in required_roles(k, cur, tgt):
            return Verdict.deny(INVALID_TRANSITION, f"Only the client may move a {k} from {cur} to {tgt}.")
        if tgt in CLIENT_REQUIRED_STATES.get(k, ()) and client_id is None:
            return Verdict.deny(MISSING_COUNTERPARTY, f"{k.capitalize()} must be assigned to a client.")
        return Verdict.allow()

    return Verdict.deny(ACCESS_DENIED, f"Role '{actor.role}' cannot change board entities.")


__all__ = [
    "ACCESS_DENIED",
    "INVALID_TRANSITION",
    "TERMINAL_STATE",
    "MISSING_COUNTERPARTY",
    "Actor",
    "Verdict",
    "evaluate",
]
