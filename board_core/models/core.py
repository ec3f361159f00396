# board_core/models/core.py

from django.conf import settings
from django.db import models

from board_core.workflows.guards import WorkflowWriteGuardMixin
from board_core.workflows.states import (
    KIND_PROJECT,
    KIND_PROPOSAL,
    ProjectState,
    ProposalState,
    Role,
)


# ============================================================
# Base
# ============================================================
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ============================================================
# Board entity (shared shape of projects and proposals)
# ============================================================
class BoardEntity(WorkflowWriteGuardMixin, TimeStampedModel):
    """
    Anything that sits in a board column.

    `state` and `position` are owned by the reorder engine once the entity
    has left its initial state. `version` increments on every engine write
    and makes concurrent reorders of the same entity fail instead of
    silently overwriting each other.
    """

    WORKFLOW_KIND = ""
    ENGINE_FIELDS = ("last_modified_by_id", "last_transition_at")

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="%(class)s_client_of",
    )
    contractor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="%(class)s_contractor_of",
    )

    position = models.PositiveIntegerField(default=0)
    version = models.PositiveIntegerField(default=0, editable=False)

    last_modified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        editable=False,
        related_name="+",
    )
    last_transition_at = models.DateTimeField(null=True, blank=True, editable=False)

    class Meta:
        abstract = True


# ============================================================
# Project
# ============================================================
class Project(BoardEntity):
    WORKFLOW_KIND = KIND_PROJECT
    INITIAL_STATE = ProjectState.DRAFT

    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)

    state = models.CharField(
        max_length=32,
        choices=ProjectState.choices,
        default=ProjectState.DRAFT,
    )

    class Meta:
        ordering = ["state", "position", "id"]
        indexes = [
            models.Index(fields=["state", "position"], name="project_state_pos_idx"),
        ]

    def __str__(self):
        return self.name


# ============================================================
# Proposal
# ============================================================
class Proposal(BoardEntity):
    WORKFLOW_KIND = KIND_PROPOSAL
    INITIAL_STATE = ProposalState.DRAFT

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="proposals",
    )
    title = models.CharField(max_length=255)
    body = models.TextField(blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    state = models.CharField(
        max_length=32,
        choices=ProposalState.choices,
        default=ProposalState.DRAFT,
    )

    class Meta:
        ordering = ["state", "position", "id"]
        indexes = [
            models.Index(fields=["state", "position"], name="proposal_state_pos_idx"),
        ]

    def save(self, *args, **kwargs):
        # Parties default from the parent project when the proposal is drafted.
        if self.pk is None and self.project_id:
            if self.client_id is None:
                self.client_id = self.project.client_id
            if self.contractor_id is None:
                self.contractor_id = self.project.contractor_id
        return super().save(*args, **kwargs)

    def __str__(self):
        return self.title


# ============================================================
# User Roles
# ============================================================
class UserRole(TimeStampedModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="board_roles",
    )
    role = models.CharField(max_length=32, choices=Role.choices)

    class Meta:
        unique_together = ("user", "role")

    def __str__(self):
        return f"{self.user} - {self.role}"


# ============================================================
# Audit Log
# ============================================================
class AuditLog(TimeStampedModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    action = models.CharField(max_length=255)
    details = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.action
