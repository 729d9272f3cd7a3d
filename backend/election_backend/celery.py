import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "election_backend.settings")

app = Celery("election_backend")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
