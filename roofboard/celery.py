# roofboard/celery.py
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "roofboard.settings")

app = Celery("roofboard")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
