# board_core/tests/conftest.py

from __future__ import annotations

import uuid
from typing import Any, Callable, Optional

import pytest
from django.contrib.auth import authenticate, get_user_model
from rest_framework.test import APIClient

from board_core.models import Project, Proposal, UserRole
from board_core.workflows.rules import Actor


_DEFAULT = object()


def _rand(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class AuthAPIClient(APIClient):
    """
    Test client that uses force_authenticate for predictable DRF auth.
    """

    _user = None

    def login(self, username: str, password: str, **kwargs) -> bool:  # type: ignore[override]
        user = authenticate(username=username, password=password)
        if not user:
            return False
        self.force_authenticate(user=user)
        self._user = user
        return True

    def logout(self) -> None:  # type: ignore[override]
        # DO NOT call force_authenticate(user=None) here.
        # DRF's force_authenticate(user=None) calls self.logout() internally.
        super().logout()
        self.handler._force_user = None
        self.handler._force_token = None
        self._user = None


@pytest.fixture
def api_client() -> AuthAPIClient:
    return AuthAPIClient()


def _make_user(username: str, role: Optional[str], email: str = ""):
    User = get_user_model()
    user, _ = User.objects.get_or_create(username=username, defaults={"email": email})
    user.set_password("pass123")
    user.email = email
    user.save(update_fields=["password", "email"])
    if role:
        UserRole.objects.get_or_create(user=user, role=role)
    return user


# ===============================================================
# Users
# ===============================================================

@pytest.fixture
def contractor(db):
    return _make_user("roofer", "CONTRACTOR", "roofer@example.com")


@pytest.fixture
def other_contractor(db):
    return _make_user("roofer2", "CONTRACTOR", "roofer2@example.com")


@pytest.fixture
def client_user(db):
    return _make_user("homeowner", "CLIENT", "homeowner@example.com")


@pytest.fixture
def other_client(db):
    return _make_user("neighbour", "CLIENT", "neighbour@example.com")


@pytest.fixture
def roleless_user(db):
    return _make_user("visitor", None)


@pytest.fixture
def contractor_actor(contractor) -> Actor:
    return Actor(id=contractor.pk, role="CONTRACTOR")


@pytest.fixture
def client_actor(client_user) -> Actor:
    return Actor(id=client_user.pk, role="CLIENT")


# ===============================================================
# Entities
# ===============================================================

@pytest.fixture
def project_factory(db, client_user, contractor) -> Callable[..., Project]:
    """
    Factory for projects in any state. Creation is not guarded, so rows can
    start anywhere in the lifecycle. Pass client=None / contractor=None for
    an unassigned side.
    """
    default_client = client_user
    default_contractor = contractor

    def _factory(
        *,
        state: str = "DRAFT",
        position: int = 0,
        client: Any = _DEFAULT,
        contractor: Any = _DEFAULT,
        **extra: Any,
    ) -> Project:
        return Project.objects.create(
            name=extra.pop("name", _rand("Roof")),
            state=state,
            position=position,
            client=default_client if client is _DEFAULT else client,
            contractor=default_contractor if contractor is _DEFAULT else contractor,
            **extra,
        )

    return _factory


@pytest.fixture
def proposal_factory(db, project_factory) -> Callable[..., Proposal]:
    def _factory(
        *,
        state: str = "DRAFT",
        position: int = 0,
        project: Optional[Project] = None,
        **extra: Any,
    ) -> Proposal:
        return Proposal.objects.create(
            project=project or project_factory(state="CONTRACTOR_REVIEWING"),
            title=extra.pop("title", _rand("Quote")),
            state=state,
            position=position,
            **extra,
        )

    return _factory


class FailingSink:
    """
    Notification sink that fails for one named recipient and records the rest.
    """

    sent: list = []
    fail_for = "homeowner"

    def send(self, recipient, context, *, transition=None):
        if recipient.get_username() == self.fail_for:
            raise ConnectionError("mail relay unreachable")
        FailingSink.sent.append((recipient.get_username(), context["to_state"]))


@pytest.fixture
def failing_sink(settings):
    FailingSink.sent = []
    settings.BOARD_NOTIFICATION_SINK = "board_core.tests.conftest.FailingSink"
    yield FailingSink
    FailingSink.sent = []
