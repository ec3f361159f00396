import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def _disable_security_redirects(settings):
    # Prevent SecurityMiddleware from forcing https://testserver/...
    settings.SECURE_SSL_REDIRECT = False

    # Prevent “secure cookie” behavior from interfering with session auth in tests
    settings.SESSION_COOKIE_SECURE = False
    settings.CSRF_COOKIE_SECURE = False
    settings.SECURE_HSTS_SECONDS = 0


@pytest.fixture(autouse=True)
def _board_defaults(settings):
    # Fan-out runs inline unless a test opts into the Celery path
    settings.BOARD_NOTIFICATIONS_ASYNC = False
    settings.BOARD_NOTIFICATION_SINK = "board_core.services.notifications.InboxEmailSink"

    # Cached boards from a previous test must not leak into the next one
    cache.clear()
    yield
    cache.clear()
