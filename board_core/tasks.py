# board_core/tasks.py
from __future__ import annotations

from celery import shared_task

from board_core.services.notifications import notify_transition_ids


@shared_task
def fan_out_transition_notifications(transition_ids: list[int]) -> list[dict]:
    return [o.as_dict() for o in notify_transition_ids(transition_ids)]
