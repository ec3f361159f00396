# board_core/services/workflow_bulk.py
"""
Batch reorder coordinator.

A board drag produces a list of {id, state, position} items. The batch is
validated in full against the transition guard before storage is touched,
then committed as one unit. Counter-party notifications are scheduled for
after the commit and never decide the outcome of the reorder.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from django.db import transaction

from board_core.selectors import BoardCache
from board_core.services.entity_store import DjangoEntityStore, EntityPatch
from board_core.services.notifications import NotificationOutcome, dispatch_notifications
from board_core.workflows import normalize_kind, normalize_state, workflow_kinds
from board_core.workflows.errors import (
    EntityNotFound,
    InvalidReorderRequest,
    TransitionForbidden,
    Unauthenticated,
    VersionConflict,
)
from board_core.workflows.rules import Actor, evaluate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReorderRequest:
    id: Any
    target_state: str
    position: int


@dataclass
class ReorderResult:
    kind: str
    changes: List[Dict[str, Any]] = field(default_factory=list)
    reordered: List[Any] = field(default_factory=list)
    transition_ids: List[int] = field(default_factory=list)
    # Filled by the post-commit hook when fan-out runs inline.
    notifications: List[NotificationOutcome] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "changes": list(self.changes),
            "reordered": list(self.reordered),
            "cursor": max(self.transition_ids) if self.transition_ids else None,
            "notifications": [o.as_dict() for o in self.notifications],
        }


# ---------------------------------------------------------------------
# Validation (no storage access)
# ---------------------------------------------------------------------

def _coerce(item) -> ReorderRequest:
    if isinstance(item, ReorderRequest):
        return item
    return ReorderRequest(
        id=item.get("id"),
        target_state=item.get("state", item.get("target_state")),
        position=item.get("position"),
    )


def _validate_requests(kind: str, requests: Iterable[Any]) -> List[ReorderRequest]:
    if kind not in workflow_kinds():
        raise InvalidReorderRequest(f"Unknown workflow kind: {kind}")

    items = [_coerce(r) for r in (requests or [])]
    if not items:
        raise InvalidReorderRequest("Provide at least one item to reorder.")

    duplicates = sorted((i for i, n in Counter(r.id for r in items).items() if n > 1), key=str)
    if duplicates:
        raise InvalidReorderRequest(
            "Each entity may appear only once per batch.",
            duplicates=duplicates,
        )

    invalid: List[Dict[str, Any]] = []
    cleaned: List[ReorderRequest] = []
    for r in items:
        state = normalize_state(r.target_state)
        if r.id is None:
            invalid.append({"id": None, "field": "id", "detail": "Missing id."})
            continue
        # Unknown but non-empty states go on to the guard, which denies them
        # as invalid transitions.
        if not state:
            invalid.append({"id": r.id, "field": "state", "detail": "Missing target state."})
            continue
        if isinstance(r.position, bool) or not isinstance(r.position, int) or r.position < 0:
            invalid.append({"id": r.id, "field": "position", "detail": "Position must be a non-negative integer."})
            continue
        cleaned.append(ReorderRequest(id=r.id, target_state=state, position=r.position))

    if invalid:
        raise InvalidReorderRequest(invalid=invalid)

    return cleaned


# ---------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------

def bulk_reorder(
    actor: Optional[Actor],
    kind: str,
    requests: Sequence[Any],
    *,
    store: Optional[DjangoEntityStore] = None,
) -> ReorderResult:
    """
    Apply a board reorder as one all-or-nothing unit.

    Raises:
      Unauthenticated        no actor
      InvalidReorderRequest  empty batch, duplicate ids, missing state, bad position
      EntityNotFound         any id missing from storage (nothing applied)
      TransitionForbidden    any item denied by the guard (nothing applied)
      VersionConflict        an entity moved between snapshot and commit
      StorageFailure         the commit itself failed

    A caller that abandons the request before the commit simply never
    reaches `run_atomically`; there is nothing to undo.
    """
    if actor is None:
        raise Unauthenticated()

    k = normalize_kind(kind)
    items = _validate_requests(k, requests)
    store = store or DjangoEntityStore(k)

    # 1) Snapshot read
    snapshots = store.find_many([r.id for r in items])
    missing = [r.id for r in items if r.id not in snapshots]
    if missing:
        logger.info("Reorder rejected for %s %s: missing ids %s", k, actor.id, missing)
        raise EntityNotFound(missing)

    # 2) Guard every item before any write
    failures: List[Dict[str, Any]] = []
    for r in items:
        entity = snapshots[r.id]
        verdict = evaluate(actor, entity, entity.state, r.target_state, kind=k)
        if not verdict:
            failures.append(
                {
                    "id": r.id,
                    "from": entity.state,
                    "to": r.target_state,
                    "reason": verdict.reason,
                    "detail": verdict.detail,
                }
            )

    if failures:
        logger.info(
            "Reorder rejected for %s by user %s (%s): %s",
            k,
            actor.id,
            actor.role,
            [(f["id"], f["reason"]) for f in failures],
        )
        raise TransitionForbidden(failures)

    # 3) Atomic commit
    patches = [
        EntityPatch(
            id=r.id,
            state=r.target_state,
            position=r.position,
            expected_version=snapshots[r.id].version,
            from_state=snapshots[r.id].state,
            from_position=snapshots[r.id].position,
            modified_by_id=actor.id,
            role=actor.acting_on(snapshots[r.id]).role,
        )
        for r in items
    ]

    try:
        transitions = store.run_atomically(patches)
    except VersionConflict as exc:
        logger.warning("Reorder conflict for %s by user %s: %s", k, actor.id, exc.payload.get("conflicting"))
        raise

    result = ReorderResult(
        kind=k,
        changes=[
            {"id": p.id, "from": p.from_state, "to": p.state}
            for p in patches
            if p.changes_state
        ],
        reordered=[p.id for p in patches if not p.changes_state],
        transition_ids=[t.pk for t in transitions],
    )

    logger.info(
        "Reorder committed for %s by user %s: %d transitions, %d reorders",
        k,
        actor.id,
        len(result.changes),
        len(result.reordered),
    )

    # 4) Post-commit side effects
    transaction.on_commit(lambda: _after_commit(result))
    return result


def _after_commit(result: ReorderResult) -> None:
    try:
        BoardCache(result.kind).invalidate()
    except Exception:
        logger.exception("Board cache invalidation failed for %s", result.kind)

    result.notifications.extend(dispatch_notifications(result.transition_ids))


def transition_entity(
    actor: Optional[Actor],
    kind: str,
    pk: Any,
    target_state: str,
    position: Optional[int] = None,
    *,
    store: Optional[DjangoEntityStore] = None,
) -> ReorderResult:
    """
    Single-entity state change. Keeps the entity's current position unless
    one is given; otherwise identical to a one-item batch.
    """
    if actor is None:
        raise Unauthenticated()

    store = store or DjangoEntityStore(kind)
    if position is None:
        current = store.find_many([pk]).get(pk)
        if current is None:
            raise EntityNotFound([pk])
        position = current.position

    return bulk_reorder(
        actor,
        kind,
        [ReorderRequest(id=pk, target_state=target_state, position=position)],
        store=store,
    )


__all__ = [
    "ReorderRequest",
    "ReorderResult",
    "bulk_reorder",
    "transition_entity",
]
