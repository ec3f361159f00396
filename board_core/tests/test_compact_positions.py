from io import StringIO

import pytest
from django.core.management import CommandError, call_command

from board_core.models import Project
from board_core.selectors import BoardCache, compact_column_positions, list_by_state


@pytest.mark.django_db
def test_compaction_keeps_display_order(contractor_actor, project_factory):
    a = project_factory(state="ACTIVE", position=3)
    b = project_factory(state="ACTIVE", position=7)
    c = project_factory(state="ACTIVE", position=7)
    before = [e.pk for e in list_by_state("project", contractor_actor)["ACTIVE"]]

    changed = compact_column_positions("project", "active")

    assert changed == 3
    after = list_by_state("project", contractor_actor)["ACTIVE"]
    assert [e.pk for e in after] == before == [a.pk, b.pk, c.pk]
    assert [e.position for e in after] == [0, 1, 2]
    assert all(e.version == 1 for e in after)


@pytest.mark.django_db
def test_rows_already_in_place_are_untouched(project_factory):
    first = project_factory(state="ACTIVE", position=0)
    second = project_factory(state="ACTIVE", position=5)

    assert compact_column_positions("project", "ACTIVE") == 1

    versions = dict(Project.objects.values_list("pk", "version"))
    assert versions == {first.pk: 0, second.pk: 1}


@pytest.mark.django_db
def test_compaction_invalidates_the_board(contractor_actor, project_factory, django_capture_on_commit_callbacks):
    project_factory(state="ACTIVE", position=4)
    board_cache = BoardCache("project", ttl=60)
    old_key = board_cache.key_for(contractor_actor)

    with django_capture_on_commit_callbacks(execute=True):
        compact_column_positions("project", "ACTIVE")

    assert board_cache.key_for(contractor_actor) != old_key


@pytest.mark.django_db
def test_unknown_state_is_rejected():
    with pytest.raises(ValueError):
        compact_column_positions("project", "SENT")


@pytest.mark.django_db
def test_command_reports_each_column(project_factory):
    project_factory(state="ACTIVE", position=2)
    project_factory(state="DRAFT", position=1)
    out = StringIO()

    call_command("compact_board_positions", "project", "--state", "ACTIVE", "--state", "draft", stdout=out)

    text = out.getvalue()
    assert "project ACTIVE: 1 rewritten" in text
    assert "project DRAFT: 1 rewritten" in text
    assert "Done, 2 rows rewritten" in text


@pytest.mark.django_db
def test_command_rejects_a_state_of_the_wrong_kind():
    with pytest.raises(CommandError):
        call_command("compact_board_positions", "proposal", "--state", "IN_PROGRESS", stdout=StringIO())
