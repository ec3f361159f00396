# board_core/services/notifications.py
"""
Counter-party notifications for committed board transitions.

Everything here runs after the board commit. Delivery is settle-all: each
transition gets its own attempt and its own outcome, and nothing raised by
a sink ever reaches the caller of `notify_all`.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings
from django.core.mail import send_mail
from django.utils.module_loading import import_string

from board_core.models import Notification, WorkflowTransition
from board_core.services.entity_store import MODEL_REGISTRY
from board_core.workflows import is_contractor_role, normalize_role
from board_core.workflows.states import KIND_PROJECT, KIND_PROPOSAL, KIND_STATES, Role

logger = logging.getLogger(__name__)

SENT = "sent"
SKIPPED = "skipped"
FAILED = "failed"

DEFAULT_SINK = "board_core.services.notifications.InboxEmailSink"


@dataclass(frozen=True)
class NotificationOutcome:
    transition_id: Optional[int]
    entity_kind: str
    entity_id: Any
    status: str
    recipient_id: Any = None
    error: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ===============================================================
# Recipient + content
# ===============================================================

def resolve_counterparty(actor_role: str, entity):
    """
    The other party of the entity relative to whoever moved it, or None
    when that slot is not assigned yet.
    """
    if is_contractor_role(actor_role):
        return getattr(entity, "client", None)
    if normalize_role(actor_role) == Role.CLIENT:
        return getattr(entity, "contractor", None)
    return None


def notification_type(kind: str, to_state: str) -> str:
    if kind == KIND_PROPOSAL:
        if to_state in {"SENT", "REVISED"}:
            return "proposal_sent"
        if to_state == "ACCEPTED":
            return "proposal_accepted"
        if to_state == "REJECTED":
            return "proposal_rejected"
    return "status_change"


def _display_name(user) -> str:
    if user is None:
        return "system"
    full = user.get_full_name() if hasattr(user, "get_full_name") else ""
    return full or user.get_username()


def _state_label(kind: str, state: str) -> str:
    try:
        return str(KIND_STATES[kind](state).label)
    except (KeyError, ValueError):
        return state


def _entity_label(kind: str, entity) -> str:
    if kind == KIND_PROPOSAL:
        project = getattr(entity, "project", None)
        return str(project) if project is not None else str(entity)
    return str(entity)


_TITLES = {
    "status_change": "{noun} Status Updated: {name}",
    "proposal_sent": "New Proposal Received: {name}",
    "proposal_accepted": "Proposal Accepted: {name}",
    "proposal_rejected": "Proposal Update: {name}",
}

_MESSAGES = {
    "status_change": '{noun} "{name}" status changed to {status}',
    "proposal_sent": 'New proposal received for "{name}" from {actor}',
    "proposal_accepted": 'Your proposal for "{name}" was accepted by {actor}',
    "proposal_rejected": 'Your proposal for "{name}" was not accepted by {actor}',
}


def build_context(transition: WorkflowTransition, entity, recipient) -> Dict[str, Any]:
    kind = transition.kind
    ntype = notification_type(kind, transition.to_state)
    name = _entity_label(kind, entity)
    status = _state_label(kind, transition.to_state)
    actor = _display_name(transition.performed_by)
    base_url = str(getattr(settings, "BOARD_APP_URL", "")).rstrip("/")

    fmt = {
        "name": name,
        "status": status,
        "actor": actor,
        "noun": "Project" if kind == KIND_PROJECT else "Proposal",
    }

    return {
        "type": ntype,
        "kind": kind,
        "entity_id": transition.object_id,
        "entity_name": name,
        "from_state": transition.from_state,
        "to_state": transition.to_state,
        "status_label": status,
        "actor_name": actor,
        "recipient_name": _display_name(recipient),
        "title": _TITLES[ntype].format(**fmt),
        "message": _MESSAGES[ntype].format(**fmt),
        "link": f"{base_url}/board/{kind}s/{transition.object_id}",
    }


# ===============================================================
# Sinks
# ===============================================================

class InboxEmailSink:
    """
    Default sink: an in-app inbox row, plus an email when the recipient
    has an address on file.
    """

    def send(self, recipient, context: Dict[str, Any], *, transition=None) -> None:
        Notification.objects.create(
            recipient=recipient,
            type=context["type"],
            title=context["title"],
            message=context["message"],
            entity_kind=context["kind"],
            entity_id=context["entity_id"],
            transition=transition,
        )

        email = getattr(recipient, "email", "")
        if not email:
            return

        body = "\n".join(
            [
                f"Hello {context['recipient_name']},",
                "",
                context["message"] + ".",
                "",
                f"Updated by: {context['actor_name']}",
                f"View: {context['link']}",
            ]
        )
        send_mail(
            subject=context["title"],
            message=body,
            from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
            recipient_list=[email],
            fail_silently=False,
        )


def get_sink():
    path = getattr(settings, "BOARD_NOTIFICATION_SINK", DEFAULT_SINK) or DEFAULT_SINK
    return import_string(path)()


# ===============================================================
# Fan-out
# ===============================================================

def _load_entities(transitions: List[WorkflowTransition]) -> Dict[tuple, Any]:
    by_kind: Dict[str, set] = {}
    for t in transitions:
        by_kind.setdefault(t.kind, set()).add(t.object_id)

    loaded: Dict[tuple, Any] = {}
    for kind, ids in by_kind.items():
        model = MODEL_REGISTRY[kind]
        qs = model.objects.select_related("client", "contractor").filter(pk__in=ids)
        if kind == KIND_PROPOSAL:
            qs = qs.select_related("project")
        for obj in qs:
            loaded[(kind, obj.pk)] = obj
    return loaded


def _notify_one(sink, transition: WorkflowTransition, entity) -> NotificationOutcome:
    base = dict(
        transition_id=transition.pk,
        entity_kind=transition.kind,
        entity_id=transition.object_id,
    )

    if entity is None:
        return NotificationOutcome(status=SKIPPED, error="entity no longer exists", **base)

    recipient = resolve_counterparty(transition.role, entity)
    if recipient is None:
        return NotificationOutcome(status=SKIPPED, **base)

    try:
        context = build_context(transition, entity, recipient)
        sink.send(recipient, context, transition=transition)
    except Exception as exc:
        logger.exception(
            "Notification to user %s failed for %s %s (%s -> %s)",
            recipient.pk,
            transition.kind,
            transition.object_id,
            transition.from_state,
            transition.to_state,
        )
        return NotificationOutcome(
            status=FAILED,
            recipient_id=recipient.pk,
            error=f"{exc.__class__.__name__}: {exc}",
            **base,
        )

    return NotificationOutcome(status=SENT, recipient_id=recipient.pk, **base)


def notify_all(transitions: Iterable[WorkflowTransition]) -> List[NotificationOutcome]:
    """
    Attempt one notification per transition and report every outcome.
    Never raises.
    """
    transitions = list(transitions)
    if not transitions:
        return []

    try:
        sink = get_sink()
        entities = _load_entities(transitions)
    except Exception as exc:
        logger.exception("Notification fan-out could not start for %d transitions", len(transitions))
        return [
            NotificationOutcome(
                transition_id=t.pk,
                entity_kind=t.kind,
                entity_id=t.object_id,
                status=FAILED,
                error=f"{exc.__class__.__name__}: {exc}",
            )
            for t in transitions
        ]

    outcomes = [_notify_one(sink, t, entities.get((t.kind, t.object_id))) for t in transitions]

    for o in outcomes:
        if o.status == FAILED:
            logger.warning("notification %s %s -> user %s: %s", o.entity_kind, o.entity_id, o.recipient_id, o.error)
        else:
            logger.info("notification %s %s -> user %s: %s", o.entity_kind, o.entity_id, o.recipient_id, o.status)

    return outcomes


def notify_transition_ids(transition_ids: Iterable[int]) -> List[NotificationOutcome]:
    ids = list(transition_ids)
    transitions = list(
        WorkflowTransition.objects.select_related("performed_by").filter(pk__in=ids).order_by("id")
    )
    return notify_all(transitions)


def dispatch_notifications(transition_ids: Iterable[int]) -> List[NotificationOutcome]:
    """
    Run fan-out inline, or hand it to Celery when BOARD_NOTIFICATIONS_ASYNC
    is on. The async path returns no outcomes; the worker logs them.
    """
    ids = list(transition_ids)
    if not ids:
        return []

    if getattr(settings, "BOARD_NOTIFICATIONS_ASYNC", False):
        from board_core.tasks import fan_out_transition_notifications

        try:
            fan_out_transition_notifications.delay(ids)
        except Exception:
            logger.exception("Could not enqueue notifications for transitions %s", ids)
        return []

    try:
        return notify_transition_ids(ids)
    except Exception:
        logger.exception("Notification fan-out failed for transitions %s", ids)
        return []


__all__ = [
    "SENT",
    "SKIPPED",
    "FAILED",
    "NotificationOutcome",
    "resolve_counterparty",
    "notification_type",
    "build_context",
    "InboxEmailSink",
    "get_sink",
    "notify_all",
    "notify_transition_ids",
    "dispatch_notifications",
]
