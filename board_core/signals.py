# board_core/signals.py
from __future__ import annotations

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from board_core.models import AuditLog, Project, Proposal, WorkflowTransition
from board_core.selectors import BoardCache


# ===============================================================
# WORKFLOW TRANSITIONS
# ===============================================================
@receiver(post_save, sender=WorkflowTransition)
def audit_workflow_transition(sender, instance: WorkflowTransition, created: bool, **kwargs):
    """
    One audit entry per committed state change.

    Runs inside the reorder commit, so a rolled back batch leaves no
    audit trail behind. Counter-party notifications are not sent from
    here; they wait for the commit.
    """
    if not created:
        return

    AuditLog.objects.create(
        user=instance.performed_by,
        action=(
            f"WORKFLOW {instance.kind.upper()} {instance.object_id}: "
            f"{instance.from_state} -> {instance.to_state}"
        ),
        details={
            "kind": instance.kind,
            "object_id": instance.object_id,
            "from": instance.from_state,
            "to": instance.to_state,
            "from_position": instance.from_position,
            "to_position": instance.to_position,
            "role": instance.role,
        },
    )


# ===============================================================
# BOARD ENTITIES
# ===============================================================
@receiver(post_save, sender=Project)
@receiver(post_save, sender=Proposal)
@receiver(post_delete, sender=Project)
@receiver(post_delete, sender=Proposal)
def invalidate_board_on_entity_write(sender, instance, **kwargs):
    """
    CRUD and admin writes change what a board shows (new cards, renamed
    cards, reassigned parties) without going through the reorder engine.
    The cached boards of that kind are dropped once the write commits.
    """
    kind = sender.WORKFLOW_KIND
    transaction.on_commit(lambda: BoardCache(kind).invalidate())
