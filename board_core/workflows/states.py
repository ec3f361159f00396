# board_core/workflows/states.py
from __future__ import annotations

from django.db import models


class ProjectState(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    ACTIVE = "ACTIVE", "Active"
    CLIENT_PENDING = "CLIENT_PENDING", "Pending Review"
    CONTRACTOR_REVIEWING = "CONTRACTOR_REVIEWING", "Under Review"
    PROPOSAL_SENT = "PROPOSAL_SENT", "Proposal Sent"
    ACCEPTED = "ACCEPTED", "Accepted"
    IN_PROGRESS = "IN_PROGRESS", "In Progress"
    COMPLETED = "COMPLETED", "Completed"
    REJECTED = "REJECTED", "Rejected"
    ARCHIVED = "ARCHIVED", "Archived"


class ProposalState(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    SENT = "SENT", "Sent"
    REVISED = "REVISED", "Revised"
    ACCEPTED = "ACCEPTED", "Accepted"
    REJECTED = "REJECTED", "Rejected"
    COMPLETED = "COMPLETED", "Completed"


class Role(models.TextChoices):
    CLIENT = "CLIENT", "Client"
    CONTRACTOR = "CONTRACTOR", "Contractor"
    ADMIN = "ADMIN", "Admin"


KIND_PROJECT = "project"
KIND_PROPOSAL = "proposal"

KIND_STATES = {
    KIND_PROJECT: ProjectState,
    KIND_PROPOSAL: ProposalState,
}
