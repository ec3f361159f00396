# board_core/selectors.py
"""
Read side of the board: column projection, change feed, and the cache
that sits in front of the projection.

Nothing here changes state or position on the reorder path; the one writer,
`compact_column_positions`, is an explicit maintenance action.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional

from django.conf import settings
from django.core.cache import cache as default_cache
from django.db import transaction
from django.db.models import F, Q, QuerySet
from django.utils import timezone

from board_core.models import WorkflowTransition
from board_core.services.entity_store import model_for_kind
from board_core.workflows import normalize_kind, normalize_role, normalize_state, states_for_kind
from board_core.workflows.rules import Actor
from board_core.workflows.states import Role

logger = logging.getLogger(__name__)


# ===============================================================
# Scoping + ordering
# ===============================================================

def _projection_order():
    return (
        "position",
        F("last_transition_at").asc(nulls_first=True),
        "id",
    )


def visible_entities(kind: str, actor: Optional[Actor]) -> QuerySet:
    """
    Entities of `kind` the actor sits on either side of. ADMIN sees every
    entity; an unknown actor sees nothing.
    """
    model = model_for_kind(kind)
    qs = model.objects.select_related("client", "contractor")
    if actor is None:
        return qs.none()
    if normalize_role(actor.role) == Role.ADMIN:
        return qs
    return qs.filter(Q(client_id=actor.id) | Q(contractor_id=actor.id))


def list_by_state(kind: str, actor: Optional[Actor]) -> "OrderedDict[str, List[Any]]":
    """
    Columns in declared state order. Within a column entities sort by
    position, then last transition time (never-moved first), then id, so
    two rows sharing a position always render in the same order.
    """
    k = normalize_kind(kind)
    columns: "OrderedDict[str, List[Any]]" = OrderedDict((s, []) for s in states_for_kind(k))

    for entity in visible_entities(k, actor).order_by(*_projection_order()):
        columns.setdefault(entity.state, []).append(entity)

    return columns


# ===============================================================
# Board cache
# ===============================================================

class BoardCache:
    """
    Per-kind cache of built board payloads.

    Keys embed a generation number; `invalidate` bumps it, which orphans
    every cached board of that kind at once. Entries also expire after
    BOARD_CACHE_TTL seconds. A TTL of 0 turns caching off.
    """

    def __init__(self, kind: str, *, cache=None, ttl: Optional[int] = None):
        self.kind = normalize_kind(kind)
        self.cache = cache if cache is not None else default_cache
        self.ttl = int(getattr(settings, "BOARD_CACHE_TTL", 30) if ttl is None else ttl)

    @property
    def generation_key(self) -> str:
        return f"board:{self.kind}:generation"

    def generation(self) -> int:
        gen = self.cache.get(self.generation_key)
        if gen is None:
            self.cache.add(self.generation_key, 1, None)
            gen = self.cache.get(self.generation_key, 1)
        return int(gen)

    def key_for(self, actor: Actor) -> str:
        return f"board:{self.kind}:g{self.generation()}:{actor.role}:{actor.id}"

    def get_or_build(self, actor: Actor, builder: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
        if self.ttl <= 0:
            return builder()

        key = self.key_for(actor)
        payload = self.cache.get(key)
        if payload is None:
            payload = builder()
            self.cache.set(key, payload, self.ttl)
        return payload

    def invalidate(self) -> None:
        try:
            self.cache.incr(self.generation_key)
        except ValueError:
            self.cache.set(self.generation_key, 2, None)


# ===============================================================
# Change feed
# ===============================================================

def changes_since(
    kind: str,
    actor: Optional[Actor],
    after: int = 0,
    limit: int = 100,
) -> List[WorkflowTransition]:
    """
    Committed transitions with id > `after`, oldest first, limited to
    entities the actor can see. The last id returned is the next cursor.
    """
    k = normalize_kind(kind)
    visible_ids = visible_entities(k, actor).values("pk")
    qs = (
        WorkflowTransition.objects.select_related("performed_by")
        .filter(kind=k, id__gt=max(int(after or 0), 0), object_id__in=visible_ids)
        .order_by("id")
    )
    return list(qs[: max(int(limit), 1)])


# ===============================================================
# Maintenance
# ===============================================================

def compact_column_positions(kind: str, state: str) -> int:
    """
    Rewrite one column's positions to 0..n-1 in projection order.

    Rows that already sit at their target position are left alone. Each
    rewritten row gets a version bump so an in-flight reorder built on the
    old positions fails with a conflict instead of landing on top.
    Returns the number of rows rewritten.
    """
    k = normalize_kind(kind)
    s = normalize_state(state)
    if s not in states_for_kind(k):
        raise ValueError(f"Unknown {k} state: {s}")

    model = model_for_kind(k)
    changed = 0

    with transaction.atomic():
        rows = list(
            model.objects.select_for_update()
            .filter(state=s)
            .order_by(*_projection_order())
            .values_list("pk", "position")
        )
        now = timezone.now()
        for index, (pk, position) in enumerate(rows):
            if position == index:
                continue
            model.objects.filter(pk=pk).update(
                position=index,
                version=F("version") + 1,
                updated_at=now,
            )
            changed += 1

        if changed:
            transaction.on_commit(lambda: BoardCache(k).invalidate())

    logger.info("Compacted %s column %s: %d of %d rows rewritten", k, s, changed, len(rows))
    return changed


__all__ = [
    "visible_entities",
    "list_by_state",
    "BoardCache",
    "changes_since",
    "compact_column_positions",
]
