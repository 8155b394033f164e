"""
Add the Celery Beat schedule for the notification retention sweep.

Runs notifications.tasks.sweep_expired_notifications daily at 2 AM
America/New_York.
"""

from django.db import migrations

SWEEP_TASK_NAME = "Notifications: Sweep Expired Notifications"


def create_periodic_tasks(apps, schema_editor):
    """Create the daily retention sweep."""
    CrontabSchedule = apps.get_model("django_celery_beat", "CrontabSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    crontab_daily_2am, _ = CrontabSchedule.objects.get_or_create(
        minute="0",
        hour="2",
        day_of_week="*",
        day_of_month="*",
        month_of_year="*",
        timezone="America/New_York",
    )

    PeriodicTask.objects.get_or_create(
        name=SWEEP_TASK_NAME,
        defaults={
            "task": "notifications.tasks.sweep_expired_notifications",
            "crontab": crontab_daily_2am,
            "enabled": True,
            "description": (
                "Deletes notifications older than NOTIFICATION_RETENTION_DAYS "
                "and finished delivery batches older than "
                "NOTIFICATION_BATCH_RETENTION_DAYS (default 30 days each)."
            ),
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the retention sweep on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name=SWEEP_TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("notifications", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
