"""
Celery configuration for the notification delivery service.

Workers consume three kinds of work:
- Single-record dispatch (one notification, one recipient)
- Batch dispatch (one payload, many recipients)
- Maintenance (invalid token cleanup, daily retention sweep)

Redis is both the message broker and result backend. Periodic tasks are
stored in the database by django-celery-beat.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery looks for a tasks.py module in each installed app
app.autodiscover_tasks()
