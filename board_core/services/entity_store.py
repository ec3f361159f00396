# board_core/services/entity_store.py
"""
Entity store adapter used by the reorder coordinator.

The coordinator only needs three things from storage: load a batch of
snapshots, apply one patch, and apply many patches as one unit. Everything
else about the ORM stays behind this module.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from board_core.models import Project, Proposal, WorkflowTransition
from board_core.workflows import normalize_kind
from board_core.workflows.errors import StorageFailure, VersionConflict

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# MODEL REGISTRY
# ---------------------------------------------------------------------

MODEL_REGISTRY = {
    Project.WORKFLOW_KIND: Project,
    Proposal.WORKFLOW_KIND: Proposal,
}


def model_for_kind(kind: str):
    k = normalize_kind(kind)
    if k not in MODEL_REGISTRY:
        raise ValueError(f"Unknown workflow kind: {kind}")
    return MODEL_REGISTRY[k]


@dataclass
class EntityPatch:
    """
    One row's worth of engine-owned fields.

    `expected_version` is the version seen at snapshot time; the write only
    lands if the row still carries it.
    """

    id: Any
    state: str
    position: int
    expected_version: int
    from_state: str
    from_position: Optional[int] = None
    modified_by_id: Any = None
    role: str = ""

    @property
    def changes_state(self) -> bool:
        return self.state != self.from_state


class DjangoEntityStore:
    def __init__(self, kind: str):
        self.kind = normalize_kind(kind)
        self.model = model_for_kind(self.kind)

    def find_many(self, ids: Iterable[Any]) -> Dict[Any, Any]:
        """
        Snapshot read in one query. Missing ids are simply absent from the
        returned mapping.
        """
        ids = list(ids)
        try:
            rows = self.model.objects.select_related("client", "contractor").filter(pk__in=ids)
            return {row.pk: row for row in rows}
        except DatabaseError as exc:
            logger.exception("Snapshot read failed for %s ids=%s", self.kind, ids)
            raise StorageFailure("The board could not be read. Retry shortly.") from exc

    def update(self, pk: Any, patch: EntityPatch) -> int:
        """
        Apply a single versioned patch. Returns the number of rows written
        (0 or 1); callers decide what a miss means.
        """
        now = timezone.now()
        values = {
            "state": patch.state,
            "position": patch.position,
            "version": F("version") + 1,
            "last_modified_by_id": patch.modified_by_id,
            "updated_at": now,
        }
        if patch.changes_state:
            values["last_transition_at"] = now

        return self.model.objects.filter(
            pk=pk, version=patch.expected_version
        ).update(**values)

    def run_atomically(self, patches: List[EntityPatch]) -> List[WorkflowTransition]:
        """
        Apply every patch or none of them.

        Raises VersionConflict when any row moved since its snapshot and
        StorageFailure for anything the database itself rejects. Returns the
        transition rows written for genuine state changes.
        """
        transitions: List[WorkflowTransition] = []
        conflicting: List[Any] = []

        try:
            with transaction.atomic():
                for patch in patches:
                    if self.update(patch.id, patch) != 1:
                        conflicting.append(patch.id)

                if conflicting:
                    # Leaving the block by exception rolls back the rows already written.
                    raise VersionConflict(conflicting)

                for patch in patches:
                    if not patch.changes_state:
                        continue
                    transitions.append(
                        WorkflowTransition.objects.create(
                            kind=self.kind,
                            object_id=patch.id,
                            from_state=patch.from_state,
                            to_state=patch.state,
                            from_position=patch.from_position,
                            to_position=patch.position,
                            performed_by_id=patch.modified_by_id,
                            role=patch.role,
                        )
                    )
        except DatabaseError as exc:
            logger.exception("Atomic board commit failed for %s", self.kind)
            raise StorageFailure() from exc

        return transitions


__all__ = [
    "MODEL_REGISTRY",
    "model_for_kind",
    "EntityPatch",
    "DjangoEntityStore",
]
