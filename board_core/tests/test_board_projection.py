from datetime import timedelta

import pytest
from django.core.cache import cache
from django.utils import timezone

from board_core.models import Project
from board_core.selectors import BoardCache, changes_since, list_by_state, visible_entities
from board_core.services.workflow_bulk import ReorderRequest, bulk_reorder
from board_core.workflows import states_for_kind
from board_core.workflows.rules import Actor


def _ids(column):
    return [e.pk for e in column]


# ===============================================================
# COLUMNS
# ===============================================================

@pytest.mark.django_db
def test_every_declared_state_has_a_column(contractor_actor):
    columns = list_by_state("project", contractor_actor)
    assert list(columns.keys()) == list(states_for_kind("project"))
    assert all(col == [] for col in columns.values())


@pytest.mark.django_db
def test_column_sorted_by_position(contractor_actor, project_factory):
    c = project_factory(state="ACTIVE", position=2)
    a = project_factory(state="ACTIVE", position=0)
    b = project_factory(state="ACTIVE", position=1)

    columns = list_by_state("project", contractor_actor)

    assert _ids(columns["ACTIVE"]) == [a.pk, b.pk, c.pk]


@pytest.mark.django_db
def test_equal_positions_break_ties_deterministically(contractor_actor, project_factory):
    never_moved = project_factory(state="ACTIVE", position=0)
    moved_late = project_factory(state="ACTIVE", position=0)
    moved_early = project_factory(state="ACTIVE", position=0)

    now = timezone.now()
    Project.objects.filter(pk=moved_late.pk).update(last_transition_at=now)
    Project.objects.filter(pk=moved_early.pk).update(last_transition_at=now - timedelta(hours=1))

    first = _ids(list_by_state("project", contractor_actor)["ACTIVE"])
    second = _ids(list_by_state("project", contractor_actor)["ACTIVE"])

    assert first == [never_moved.pk, moved_early.pk, moved_late.pk]
    assert first == second


@pytest.mark.django_db
def test_projection_reflects_a_committed_reorder(client_actor, proposal_factory):
    p1 = proposal_factory(state="SENT", position=3)

    bulk_reorder(client_actor, "proposal", [ReorderRequest(p1.pk, "ACCEPTED", 0)])
    columns = list_by_state("proposal", client_actor)

    assert _ids(columns["ACCEPTED"]) == [p1.pk]
    assert columns["SENT"] == []


# ===============================================================
# VISIBILITY
# ===============================================================

@pytest.mark.django_db
def test_parties_see_only_their_own_entities(
    client_actor,
    contractor_actor,
    other_contractor,
    other_client,
    project_factory,
):
    mine = project_factory(state="ACTIVE")
    theirs = project_factory(state="ACTIVE", client=other_client, contractor=other_contractor)

    assert set(visible_entities("project", client_actor).values_list("pk", flat=True)) == {mine.pk}
    assert set(visible_entities("project", contractor_actor).values_list("pk", flat=True)) == {mine.pk}

    stranger = Actor(id=other_client.pk, role="CLIENT")
    assert _ids(list_by_state("project", stranger)["ACTIVE"]) == [theirs.pk]


@pytest.mark.django_db
def test_admin_sees_everything(project_factory, other_client, other_contractor):
    a = project_factory(state="ACTIVE")
    b = project_factory(state="DRAFT", client=other_client, contractor=other_contractor)

    admin = Actor(id=999999, role="ADMIN")
    assert set(visible_entities("project", admin).values_list("pk", flat=True)) == {a.pk, b.pk}


@pytest.mark.django_db
def test_no_actor_sees_nothing(project_factory):
    project_factory(state="ACTIVE")
    assert not visible_entities("project", None).exists()


# ===============================================================
# CACHE
# ===============================================================

@pytest.mark.django_db
def test_cache_serves_the_second_read(contractor_actor):
    calls = []

    def builder():
        calls.append(1)
        return {"built": len(calls)}

    board_cache = BoardCache("project", ttl=60)
    assert board_cache.get_or_build(contractor_actor, builder) == {"built": 1}
    assert board_cache.get_or_build(contractor_actor, builder) == {"built": 1}
    assert len(calls) == 1


@pytest.mark.django_db
def test_zero_ttl_disables_caching(contractor_actor):
    calls = []
    board_cache = BoardCache("project", ttl=0)

    board_cache.get_or_build(contractor_actor, lambda: calls.append(1) or {})
    board_cache.get_or_build(contractor_actor, lambda: calls.append(1) or {})

    assert len(calls) == 2


@pytest.mark.django_db
def test_commit_invalidates_cached_boards(
    contractor_actor,
    project_factory,
    django_capture_on_commit_callbacks,
):
    p = project_factory(state="ACTIVE", position=0)
    board_cache = BoardCache("project", ttl=60)
    old_key = board_cache.key_for(contractor_actor)
    board_cache.get_or_build(contractor_actor, lambda: {"stale": True})

    with django_capture_on_commit_callbacks(execute=True):
        bulk_reorder(contractor_actor, "project", [ReorderRequest(p.pk, "IN_PROGRESS", 0)])

    assert board_cache.key_for(contractor_actor) != old_key
    assert board_cache.get_or_build(contractor_actor, lambda: {"stale": False}) == {"stale": False}


@pytest.mark.django_db
def test_invalidation_is_per_kind(contractor_actor):
    projects = BoardCache("project", ttl=60)
    proposals = BoardCache("proposal", ttl=60)
    proposal_key = proposals.key_for(contractor_actor)

    projects.invalidate()

    assert proposals.key_for(contractor_actor) == proposal_key


def test_invalidate_recovers_from_an_evicted_generation():
    board_cache = BoardCache("project", ttl=60)
    cache.delete(board_cache.generation_key)

    board_cache.invalidate()

    assert board_cache.generation() == 2


def _active_ids(actor):
    return lambda: _ids(list_by_state("project", actor)["ACTIVE"])


@pytest.mark.django_db
def test_project_created_after_a_cached_read_shows_up(
    contractor_actor,
    project_factory,
    django_capture_on_commit_callbacks,
):
    first = project_factory(state="ACTIVE", position=0)
    board_cache = BoardCache("project", ttl=60)
    assert board_cache.get_or_build(contractor_actor, _active_ids(contractor_actor)) == [first.pk]

    with django_capture_on_commit_callbacks(execute=True):
        second = project_factory(state="ACTIVE", position=1)

    assert board_cache.get_or_build(contractor_actor, _active_ids(contractor_actor)) == [first.pk, second.pk]


@pytest.mark.django_db
def test_reassignment_and_deletion_refresh_the_board(
    client_actor,
    client_user,
    other_client,
    project_factory,
    proposal_factory,
    django_capture_on_commit_callbacks,
):
    project = project_factory(state="ACTIVE", client=other_client)
    board_cache = BoardCache("project", ttl=60)
    assert board_cache.get_or_build(client_actor, _active_ids(client_actor)) == []

    with django_capture_on_commit_callbacks(execute=True):
        project.client = client_user
        project.save()
    assert board_cache.get_or_build(client_actor, _active_ids(client_actor)) == [project.pk]

    proposals = BoardCache("proposal", ttl=60)
    proposal = proposal_factory(state="DRAFT", project=project)
    old_key = proposals.key_for(client_actor)
    with django_capture_on_commit_callbacks(execute=True):
        proposal.delete()
    assert proposals.key_for(client_actor) != old_key


@pytest.mark.django_db
def test_entity_write_waits_for_commit(
    contractor_actor,
    project_factory,
    django_capture_on_commit_callbacks,
):
    board_cache = BoardCache("project", ttl=60)
    old_key = board_cache.key_for(contractor_actor)

    with django_capture_on_commit_callbacks(execute=False) as callbacks:
        project_factory(state="ACTIVE")

    assert len(callbacks) == 1
    assert board_cache.key_for(contractor_actor) == old_key


# ===============================================================
# CHANGE FEED
# ===============================================================

@pytest.mark.django_db
def test_change_feed_pages_by_cursor(contractor_actor, project_factory):
    a = project_factory(state="ACCEPTED", position=0)
    b = project_factory(state="ACCEPTED", position=1)

    first = bulk_reorder(contractor_actor, "project", [ReorderRequest(a.pk, "IN_PROGRESS", 0)])
    second = bulk_reorder(contractor_actor, "project", [ReorderRequest(b.pk, "IN_PROGRESS", 1)])

    everything = changes_since("project", contractor_actor)
    assert [t.object_id for t in everything] == [a.pk, b.pk]

    after_first = changes_since("project", contractor_actor, after=first.transition_ids[0])
    assert [t.pk for t in after_first] == second.transition_ids

    assert changes_since("project", contractor_actor, after=second.transition_ids[0]) == []
    assert len(changes_since("project", contractor_actor, limit=1)) == 1


@pytest.mark.django_db
def test_change_feed_hides_other_peoples_entities(
    contractor_actor,
    other_contractor,
    other_client,
    project_factory,
):
    theirs = project_factory(state="ACCEPTED", client=other_client, contractor=other_contractor)
    bulk_reorder(
        Actor(id=other_contractor.pk, role="CONTRACTOR"),
        "project",
        [ReorderRequest(theirs.pk, "IN_PROGRESS", 0)],
    )

    assert changes_since("project", contractor_actor) == []
