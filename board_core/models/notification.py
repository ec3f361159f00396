from django.conf import settings
from django.db import models


class Notification(models.Model):
    """In-app inbox entry for a counter-party of a board state change."""

    TYPE_CHOICES = (
        ("status_change", "Status change"),
        ("proposal_sent", "Proposal sent"),
        ("proposal_accepted", "Proposal accepted"),
        ("proposal_rejected", "Proposal rejected"),
    )

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="board_notifications",
    )
    type = models.CharField(max_length=32, choices=TYPE_CHOICES)
    title = models.CharField(max_length=255)
    message = models.TextField()

    entity_kind = models.CharField(max_length=32)
    entity_id = models.PositiveIntegerField()
    transition = models.ForeignKey(
        "board_core.WorkflowTransition",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
    )

    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient", "read"], name="notification_unread_idx"),
        ]

    def __str__(self):
        return f"{self.recipient} - {self.title}"
