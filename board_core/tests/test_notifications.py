import pytest

from board_core.models import Notification, WorkflowTransition
from board_core import tasks
from board_core.services.notifications import (
    build_context,
    dispatch_notifications,
    notification_type,
    notify_all,
    resolve_counterparty,
)
from board_core.services.workflow_bulk import ReorderRequest, bulk_reorder


# ===============================================================
# PURE HELPERS
# ===============================================================

def test_notification_types():
    assert notification_type("proposal", "SENT") == "proposal_sent"
    assert notification_type("proposal", "REVISED") == "proposal_sent"
    assert notification_type("proposal", "ACCEPTED") == "proposal_accepted"
    assert notification_type("proposal", "REJECTED") == "proposal_rejected"
    assert notification_type("proposal", "COMPLETED") == "status_change"
    assert notification_type("project", "ACCEPTED") == "status_change"


@pytest.mark.django_db
def test_counterparty_is_the_other_side(project_factory, client_user, contractor):
    project = project_factory(state="ACTIVE")
    assert resolve_counterparty("CONTRACTOR", project) == client_user
    assert resolve_counterparty("ADMIN", project) == client_user
    assert resolve_counterparty("CLIENT", project) == contractor
    assert resolve_counterparty("VISITOR", project) is None


@pytest.mark.django_db
def test_context_uses_labels_and_link(settings, project_factory, contractor, client_user):
    settings.BOARD_APP_URL = "https://board.example.com/"
    project = project_factory(state="IN_PROGRESS", name="Maple St re-roof")
    t = WorkflowTransition.objects.create(
        kind="project",
        object_id=project.pk,
        from_state="ACCEPTED",
        to_state="IN_PROGRESS",
        performed_by=contractor,
        role="CONTRACTOR",
    )

    ctx = build_context(t, project, client_user)

    assert ctx["type"] == "status_change"
    assert ctx["title"] == "Project Status Updated: Maple St re-roof"
    assert ctx["message"] == 'Project "Maple St re-roof" status changed to In Progress'
    assert ctx["link"] == f"https://board.example.com/board/projects/{project.pk}"
    assert ctx["actor_name"] == "roofer"


# ===============================================================
# FAN-OUT
# ===============================================================

@pytest.mark.django_db
def test_unassigned_counterparty_is_skipped(contractor_actor, project_factory, django_capture_on_commit_callbacks):
    # No client yet: moving DRAFT -> ACTIVE notifies nobody
    project = project_factory(state="DRAFT", client=None)

    with django_capture_on_commit_callbacks(execute=True):
        result = bulk_reorder(contractor_actor, "project", [ReorderRequest(project.pk, "ACTIVE", 0)])

    assert [o.status for o in result.notifications] == ["skipped"]
    assert not Notification.objects.exists()


@pytest.mark.django_db
def test_pure_reorders_notify_nobody(contractor_actor, project_factory, django_capture_on_commit_callbacks):
    project = project_factory(state="ACTIVE", position=0)

    with django_capture_on_commit_callbacks(execute=True):
        result = bulk_reorder(contractor_actor, "project", [ReorderRequest(project.pk, "ACTIVE", 3)])

    assert result.notifications == []
    assert not Notification.objects.exists()


@pytest.mark.django_db
def test_one_failing_recipient_does_not_block_the_others(
    contractor_actor,
    project_factory,
    other_client,
    failing_sink,
    django_capture_on_commit_callbacks,
):
    # First project's client is "homeowner", which the sink refuses
    failing = project_factory(state="ACCEPTED", position=0)
    working = project_factory(state="ACCEPTED", position=1, client=other_client)

    with django_capture_on_commit_callbacks(execute=True):
        result = bulk_reorder(
            contractor_actor,
            "project",
            [
                ReorderRequest(failing.pk, "IN_PROGRESS", 0),
                ReorderRequest(working.pk, "IN_PROGRESS", 1),
            ],
        )

    statuses = {o.entity_id: o.status for o in result.notifications}
    assert statuses == {failing.pk: "failed", working.pk: "sent"}
    assert "mail relay unreachable" in next(o.error for o in result.notifications if o.status == "failed")
    assert failing_sink.sent == [("neighbour", "IN_PROGRESS")]

    # The reorder itself stands
    failing.refresh_from_db()
    working.refresh_from_db()
    assert failing.state == working.state == "IN_PROGRESS"


@pytest.mark.django_db
def test_notify_all_survives_a_broken_sink_setting(settings, contractor, project_factory):
    settings.BOARD_NOTIFICATION_SINK = "board_core.services.notifications.DoesNotExist"
    project = project_factory(state="IN_PROGRESS")
    t = WorkflowTransition.objects.create(
        kind="project",
        object_id=project.pk,
        from_state="ACCEPTED",
        to_state="IN_PROGRESS",
        performed_by=contractor,
        role="CONTRACTOR",
    )

    outcomes = notify_all([t])

    assert [o.status for o in outcomes] == ["failed"]


def test_notify_all_with_nothing_to_do():
    assert notify_all([]) == []


# ===============================================================
# ASYNC DISPATCH
# ===============================================================

class _QueueRecorder:
    def __init__(self, fail=False):
        self.fail = fail
        self.queued = []

    def delay(self, ids):
        if self.fail:
            raise ConnectionError("broker down")
        self.queued.append(ids)


@pytest.mark.django_db
def test_async_mode_enqueues_transition_ids(settings, monkeypatch):
    settings.BOARD_NOTIFICATIONS_ASYNC = True
    recorder = _QueueRecorder()
    monkeypatch.setattr(tasks, "fan_out_transition_notifications", recorder)

    assert dispatch_notifications([3, 4]) == []
    assert recorder.queued == [[3, 4]]


@pytest.mark.django_db
def test_async_enqueue_failure_is_swallowed(settings, monkeypatch):
    settings.BOARD_NOTIFICATIONS_ASYNC = True
    monkeypatch.setattr(tasks, "fan_out_transition_notifications", _QueueRecorder(fail=True))

    assert dispatch_notifications([1]) == []


@pytest.mark.django_db
def test_task_runs_fan_out(contractor, client_user, project_factory):
    project = project_factory(state="IN_PROGRESS")
    t = WorkflowTransition.objects.create(
        kind="project",
        object_id=project.pk,
        from_state="ACCEPTED",
        to_state="IN_PROGRESS",
        performed_by=contractor,
        role="CONTRACTOR",
    )

    out = tasks.fan_out_transition_notifications(transition_ids=[t.pk])

    assert out[0]["status"] == "sent"
    assert out[0]["recipient_id"] == client_user.pk
    assert Notification.objects.filter(recipient=client_user, transition=t).exists()


def test_failing_sink_starts_each_test_with_no_record(failing_sink):
    assert failing_sink.sent == []
