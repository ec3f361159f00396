# board_core/urls.py

from django.urls import path

from .views import HealthCheckView
from .views_board import (
    BoardChangesView,
    BoardReorderView,
    BoardView,
    EntityAllowedTransitionsView,
    EntityTransitionView,
)
from .views_identity import WhoAmIView
from .views_notifications import NotificationListView, NotificationMarkReadView
from .views_workflows import WorkflowDefinitionView

app_name = "board_core"

urlpatterns = [
    # -------------------------------------------------
    # System
    # -------------------------------------------------
    path("health/", HealthCheckView.as_view(), name="health_check"),
    path("whoami/", WhoAmIView.as_view(), name="whoami"),

    # -------------------------------------------------
    # Workflow definitions (static metadata)
    # -------------------------------------------------
    path(
        "workflows/<str:kind>/definition/",
        WorkflowDefinitionView.as_view(),
        name="workflow-definition",
    ),

    # -------------------------------------------------
    # Notifications inbox
    # -------------------------------------------------
    path("notifications/", NotificationListView.as_view(), name="notification-list"),
    path(
        "notifications/<int:pk>/read/",
        NotificationMarkReadView.as_view(),
        name="notification-read",
    ),

    # -------------------------------------------------
    # Board (projection, reorder, change feed)
    # -------------------------------------------------
    path("<str:kind>/", BoardView.as_view(), name="board"),
    path("<str:kind>/reorder/", BoardReorderView.as_view(), name="board-reorder"),
    path("<str:kind>/changes/", BoardChangesView.as_view(), name="board-changes"),
    path(
        "<str:kind>/<int:pk>/transition/",
        EntityTransitionView.as_view(),
        name="entity-transition",
    ),
    path(
        "<str:kind>/<int:pk>/allowed/",
        EntityAllowedTransitionsView.as_view(),
        name="entity-allowed",
    ),
]
