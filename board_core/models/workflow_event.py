from django.conf import settings
from django.db import models


class WorkflowTransition(models.Model):
    """
    Immutable audit row for one genuine state change of a board entity.

    Rows are written in the same atomic commit as the entity update, so
    their ids form a monotonic cursor for the board change feed.
    """

    KIND_CHOICES = (
        ("project", "Project"),
        ("proposal", "Proposal"),
    )

    kind = models.CharField(max_length=32, choices=KIND_CHOICES)
    object_id = models.PositiveIntegerField()

    from_state = models.CharField(max_length=32)
    to_state = models.CharField(max_length=32)
    from_position = models.PositiveIntegerField(null=True, blank=True)
    to_position = models.PositiveIntegerField(null=True, blank=True)

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="workflow_transitions",
    )
    role = models.CharField(max_length=32, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["kind", "object_id"], name="transition_kind_object_idx"),
        ]

    def __str__(self):
        return (
            f"{self.kind}:{self.object_id} "
            f"{self.from_state} -> {self.to_state}"
        )
