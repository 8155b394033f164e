"""
Django signals for notifications.

New rows are the trigger for delivery: when a Notification or DeliveryBatch
is inserted, the matching dispatch task is queued once the surrounding
transaction commits, so workers never see a row that might still roll back.

Related files:
    - tasks.py: dispatch_notification, dispatch_batch
    - apps.py: Signal import in ready()
"""

import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from notifications.models import BatchStatus, DeliveryBatch, DeliveryStatus, Notification

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Notification)
def queue_notification_dispatch(sender, instance, created, **kwargs):
    """Queue push delivery for a newly created pending notification."""
    if not created or instance.delivery_status != DeliveryStatus.PENDING:
        return

    from notifications.tasks import dispatch_notification

    notification_id = str(instance.pk)
    transaction.on_commit(lambda: dispatch_notification.delay(notification_id))
    logger.debug(f"Queued dispatch for notification {notification_id}")


@receiver(post_save, sender=DeliveryBatch)
def queue_batch_dispatch(sender, instance, created, **kwargs):
    """Queue multicast delivery for a newly created queued batch."""
    if not created or instance.status != BatchStatus.QUEUED:
        return

    from notifications.tasks import dispatch_batch

    batch_id = str(instance.pk)
    transaction.on_commit(lambda: dispatch_batch.delay(batch_id))
    logger.debug(f"Queued dispatch for batch {batch_id}")
