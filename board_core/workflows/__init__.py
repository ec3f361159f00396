# board_core/workflows/__init__.py
from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Set

from .states import (
    KIND_PROJECT,
    KIND_PROPOSAL,
    KIND_STATES,
    ProjectState,
    ProposalState,
    Role,
)


# ===============================================================
# Canonical workflow definitions
# ===============================================================

PROJECT_STATES: FrozenSet[str] = frozenset(ProjectState.values)

PROJECT_TRANSITIONS: Mapping[str, FrozenSet[str]] = {
    ProjectState.DRAFT: frozenset({ProjectState.ACTIVE, ProjectState.CLIENT_PENDING}),
    ProjectState.ACTIVE: frozenset({ProjectState.IN_PROGRESS}),
    ProjectState.CLIENT_PENDING: frozenset({ProjectState.CONTRACTOR_REVIEWING}),
    ProjectState.CONTRACTOR_REVIEWING: frozenset({ProjectState.PROPOSAL_SENT, ProjectState.REJECTED}),
    ProjectState.PROPOSAL_SENT: frozenset({ProjectState.ACCEPTED, ProjectState.REJECTED}),
    ProjectState.ACCEPTED: frozenset({ProjectState.IN_PROGRESS}),
    ProjectState.IN_PROGRESS: frozenset({ProjectState.COMPLETED}),
    ProjectState.COMPLETED: frozenset(),
    ProjectState.REJECTED: frozenset(),
    ProjectState.ARCHIVED: frozenset(),
}

PROPOSAL_STATES: FrozenSet[str] = frozenset(ProposalState.values)

PROPOSAL_TRANSITIONS: Mapping[str, FrozenSet[str]] = {
    ProposalState.DRAFT: frozenset({ProposalState.SENT}),
    ProposalState.SENT: frozenset({ProposalState.REVISED, ProposalState.ACCEPTED, ProposalState.REJECTED}),
    ProposalState.REVISED: frozenset({ProposalState.SENT, ProposalState.ACCEPTED, ProposalState.REJECTED}),
    ProposalState.ACCEPTED: frozenset({ProposalState.COMPLETED}),
    ProposalState.REJECTED: frozenset(),
    ProposalState.COMPLETED: frozenset(),
}


# ===============================================================
# Role requirements per transition
# ===============================================================
# Anything not listed under CLIENT belongs to the contractor side.

_CLIENT = frozenset({Role.CLIENT})
_CONTRACTOR = frozenset({Role.CONTRACTOR, Role.ADMIN})

PROJECT_TRANSITION_ROLES: Mapping[str, Mapping[str, FrozenSet[str]]] = {
    ProjectState.PROPOSAL_SENT: {
        ProjectState.ACCEPTED: _CLIENT,
        ProjectState.REJECTED: _CLIENT,
    },
}

PROPOSAL_TRANSITION_ROLES: Mapping[str, Mapping[str, FrozenSet[str]]] = {
    ProposalState.SENT: {
        ProposalState.ACCEPTED: _CLIENT,
        ProposalState.REJECTED: _CLIENT,
    },
    ProposalState.REVISED: {
        ProposalState.ACCEPTED: _CLIENT,
        ProposalState.REJECTED: _CLIENT,
    },
}

# States in which the client is expected to answer, and the answers.
AWAITING_RESPONSE_STATES: Mapping[str, FrozenSet[str]] = {
    KIND_PROJECT: frozenset({ProjectState.PROPOSAL_SENT}),
    KIND_PROPOSAL: frozenset({ProposalState.SENT, ProposalState.REVISED}),
}

RESPONSE_STATES: FrozenSet[str] = frozenset({"ACCEPTED", "REJECTED"})

# Entering these states needs a client on the entity.
CLIENT_REQUIRED_STATES: Mapping[str, FrozenSet[str]] = {
    KIND_PROJECT: frozenset({ProjectState.PROPOSAL_SENT}),
    KIND_PROPOSAL: frozenset({ProposalState.SENT, ProposalState.REVISED}),
}


# ===============================================================
# Role normalization
# ===============================================================

ROLE_ALIASES: Dict[str, str] = {
    "CLIENT": Role.CLIENT,
    "CUSTOMER": Role.CLIENT,
    "HOMEOWNER": Role.CLIENT,
    "CONTRACTOR": Role.CONTRACTOR,
    "ROOFER": Role.CONTRACTOR,
    "ADMIN": Role.ADMIN,
    "SUPERUSER": Role.ADMIN,
}


def normalize_kind(value: str) -> str:
    return str(value or "").strip().lower()


def normalize_state(value: str) -> str:
    return str(value or "").strip().upper()


def normalize_role(value: str) -> str:
    raw = str(value or "").strip().upper().replace("-", "_").replace(" ", "_")
    return str(ROLE_ALIASES.get(raw, raw))


def is_contractor_role(role: str) -> bool:
    return normalize_role(role) in _CONTRACTOR


def _transitions_for_kind(kind: str) -> Mapping[str, FrozenSet[str]]:
    k = normalize_kind(kind)
    if k == KIND_PROJECT:
        return PROJECT_TRANSITIONS
    if k == KIND_PROPOSAL:
        return PROPOSAL_TRANSITIONS
    raise ValueError(f"Unknown workflow kind: {kind}")


def _roles_for_kind(kind: str) -> Mapping[str, Mapping[str, FrozenSet[str]]]:
    k = normalize_kind(kind)
    if k == KIND_PROJECT:
        return PROJECT_TRANSITION_ROLES
    return PROPOSAL_TRANSITION_ROLES


def workflow_kinds() -> List[str]:
    return list(KIND_STATES)


def states_for_kind(kind: str) -> List[str]:
    """
    Declared states of a kind, in lifecycle order (also the board column order).
    """
    k = normalize_kind(kind)
    if k not in KIND_STATES:
        raise ValueError(f"Unknown workflow kind: {kind}")
    return list(KIND_STATES[k].values)


def is_known_state(kind: str, state: str) -> bool:
    return normalize_state(state) in states_for_kind(kind)


# ===============================================================
# Public workflow API
# ===============================================================

def allowed_targets(kind: str, current: str) -> FrozenSet[str]:
    """
    Forward targets reachable from `current`. Same-state moves are never
    listed here; callers treat them as implicit reorders.
    """
    trans = _transitions_for_kind(kind)
    cur = normalize_state(current)
    if cur not in trans:
        raise ValueError(f"Unknown {normalize_kind(kind)} state: {cur}")
    return trans[cur]


def is_terminal(kind: str, state: str) -> bool:
    return not allowed_targets(kind, state)


def terminal_states(kind: str) -> List[str]:
    return [s for s in states_for_kind(kind) if is_terminal(kind, s)]


def required_roles(kind: str, current: str, target: str) -> Set[str]:
    """
    Roles that may perform current -> target. Empty when the transition is
    not in the table.
    """
    cur = normalize_state(current)
    tgt = normalize_state(target)
    if tgt not in allowed_targets(kind, cur):
        return set()
    explicit = _roles_for_kind(kind).get(cur, {}).get(tgt)
    return {str(r) for r in (explicit if explicit is not None else _CONTRACTOR)}


def allowed_transitions(kind: str, current: str, role: Optional[str] = None) -> List[str]:
    """
    Next states for a state, optionally filtered by role. This is the
    UX hint a board uses before a drag; the guard stays authoritative.
    """
    nxt = allowed_targets(kind, current)
    if role is None:
        return sorted(str(t) for t in nxt)

    r = normalize_role(role)
    return sorted(str(t) for t in nxt if r in required_roles(kind, current, t))


def workflow_definition(kind: Optional[str] = None) -> Dict[str, Any]:
    """
    Stable JSON-serializable definition for client-side mirrors.
    """
    def _one(k: str) -> Dict[str, Any]:
        kk = normalize_kind(k)
        states = states_for_kind(kk)
        return {
            "kind": kk,
            "states": states,
            "initial_state": states[0],
            "terminal_states": terminal_states(kk),
            "awaiting_response_states": sorted(str(s) for s in AWAITING_RESPONSE_STATES[kk]),
            "transitions": {
                s: [
                    {"to": str(t), "roles": sorted(required_roles(kk, s, t))}
                    for t in sorted(allowed_targets(kk, s))
                ]
                for s in states
            },
        }

    if kind is None:
        return {k: _one(k) for k in workflow_kinds()}
    return _one(kind)


__all__ = [
    "KIND_PROJECT",
    "KIND_PROPOSAL",
    "ProjectState",
    "ProposalState",
    "Role",
    "PROJECT_STATES",
    "PROJECT_TRANSITIONS",
    "PROPOSAL_STATES",
    "PROPOSAL_TRANSITIONS",
    "AWAITING_RESPONSE_STATES",
    "RESPONSE_STATES",
    "CLIENT_REQUIRED_STATES",
    "normalize_kind",
    "normalize_state",
    "normalize_role",
    "is_contractor_role",
    "workflow_kinds",
    "states_for_kind",
    "is_known_state",
    "allowed_targets",
    "is_terminal",
    "terminal_states",
    "required_roles",
    "allowed_transitions",
    "workflow_definition",
]
