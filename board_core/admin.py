# board_core/admin.py

from django.contrib import admin

from .models import (
    AuditLog,
    Notification,
    Project,
    Proposal,
    UserRole,
    WorkflowTransition,
)


# =============================================================
# Board entities
# =============================================================
# state/position/version are engine-owned; the admin shows them but
# never writes them.

class BoardEntityAdmin(admin.ModelAdmin):
    list_filter = ("state",)
    readonly_fields = (
        "state",
        "position",
        "version",
        "last_modified_by",
        "last_transition_at",
        "created_at",
        "updated_at",
    )
    ordering = ("state", "position", "id")


@admin.register(Project)
class ProjectAdmin(BoardEntityAdmin):
    list_display = ("name", "state", "position", "client", "contractor", "updated_at")
    search_fields = ("name", "address", "client__username", "contractor__username")


@admin.register(Proposal)
class ProposalAdmin(BoardEntityAdmin):
    list_display = ("title", "project", "state", "position", "amount", "updated_at")
    search_fields = ("title", "project__name")
    list_select_related = ("project",)


@admin.register(UserRole)
class UserRoleAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "created_at")
    list_filter = ("role",)
    search_fields = ("user__username",)


# =============================================================
# Workflow transitions (READ-ONLY AUDIT LOG)
# =============================================================

@admin.register(WorkflowTransition)
class WorkflowTransitionAdmin(admin.ModelAdmin):
    list_display = (
        "kind",
        "object_id",
        "from_state",
        "to_state",
        "performed_by",
        "role",
        "created_at",
    )
    list_filter = (
        "kind",
        "from_state",
        "to_state",
    )
    search_fields = (
        "object_id",
        "performed_by__username",
    )
    ordering = ("-created_at",)

    readonly_fields = [f.name for f in WorkflowTransition._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("action", "user", "created_at")
    search_fields = ("action", "user__username")
    readonly_fields = ("user", "action", "details", "created_at", "updated_at")


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("title", "recipient", "type", "read", "created_at")
    list_filter = ("type", "read")
    search_fields = ("title", "recipient__username")
