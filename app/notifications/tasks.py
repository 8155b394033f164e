"""
Celery tasks for notification delivery.

Tasks:
    dispatch_notification: Deliver one Notification via push
    dispatch_batch: Deliver one DeliveryBatch via multicast push
    remove_invalid_push_token: Clear a rejected token from a user profile
    sweep_expired_notifications: Daily retention sweep (celery-beat)

Design:
    - Tasks receive ids as strings and are safe to run more than once;
      dispatchers skip anything that is not PENDING/QUEUED
    - A gateway is built per invocation and closed when the task ends
    - Deliveries are not retried automatically: a failed push is recorded
      on the row and the producer decides whether to create a new one

Usage:
    from notifications.tasks import dispatch_notification

    # Queued automatically by notifications.signals on commit
    dispatch_notification.delay("uuid-string")
"""

from __future__ import annotations

import logging

from celery import shared_task

from notifications.dispatchers import BatchDispatcher, NotificationDispatcher
from notifications.gateways import get_gateway
from notifications.retention import RetentionSweeper
from users.services import PushTokenService

logger = logging.getLogger(__name__)


@shared_task(acks_late=True)
def dispatch_notification(notification_id: str) -> dict:
    """
    Send one notification to its recipient's device.

    Args:
        notification_id: UUID string of the Notification

    Returns:
        Dict with notification_id, status ("sent", "failed", "skipped",
        "not_found"), message_id and error_code
    """
    with get_gateway() as gateway:
        outcome = NotificationDispatcher(gateway).dispatch(notification_id)
    return outcome.to_dict()


@shared_task(acks_late=True)
def dispatch_batch(batch_id: str) -> dict:
    """
    Send one batch payload to all of its recipients.

    Args:
        batch_id: UUID string of the DeliveryBatch

    Returns:
        Dict with batch_id, status and success/failure/excluded counts
    """
    with get_gateway() as gateway:
        outcome = BatchDispatcher(gateway).dispatch(batch_id)
    return outcome.to_dict()


@shared_task(
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def remove_invalid_push_token(user_id: str, token: str) -> bool:
    """
    Clear ``token`` from the user's profile if it is still the current one.

    Queued by the batch dispatcher after the batch is finalized. Retried
    on database errors; the compare-and-delete makes retries harmless.

    Returns:
        True if the token was removed
    """
    return PushTokenService.remove_token_if_matches(user_id, token)


@shared_task
def sweep_expired_notifications() -> dict:
    """
    Delete notifications and finished batches past retention.

    Scheduled daily at 02:00 America/New_York by migration 0002.

    Returns:
        Dict with notifications_deleted and batches_deleted
    """
    logger.info("Starting notification retention sweep")
    return RetentionSweeper().sweep().to_dict()
