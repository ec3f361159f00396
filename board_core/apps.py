# board_core/apps.py

from django.apps import AppConfig


class BoardCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "board_core"
    verbose_name = "Roofing board"

    def ready(self):
        from . import signals  # noqa
