"""
Retention sweeper for notification records and delivery batches.

Runs daily from Celery beat (see migration 0002). Deletes:
- Notifications created more than NOTIFICATION_RETENTION_DAYS ago
- Completed or failed DeliveryBatches created more than
  NOTIFICATION_BATCH_RETENTION_DAYS ago (queued/processing batches are kept)

Rows are deleted in primary-key chunks so a large backlog never becomes one
long transaction. Deleting a notification that a dispatcher is still
working on is harmless: the dispatcher's conditional UPDATE matches nothing.

Re-running the sweep immediately deletes nothing.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from django.conf import settings
from django.db.models import QuerySet
from django.utils import timezone as django_timezone

from notifications.models import TERMINAL_BATCH_STATUSES, DeliveryBatch, Notification

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    notifications_deleted: int = 0
    batches_deleted: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class RetentionSweeper:
    """
    Delete notifications and finished batches past their retention window.

    Args:
        retention_days: Notification retention (default from settings, 30)
        batch_retention_days: Terminal batch retention (default from settings, 30)
        chunk_size: Rows per DELETE statement
    """

    def __init__(
        self,
        retention_days: int | None = None,
        batch_retention_days: int | None = None,
        chunk_size: int | None = None,
    ):
        self.retention_days = (
            retention_days
            if retention_days is not None
            else settings.NOTIFICATION_RETENTION_DAYS
        )
        self.batch_retention_days = (
            batch_retention_days
            if batch_retention_days is not None
            else settings.NOTIFICATION_BATCH_RETENTION_DAYS
        )
        self.chunk_size = chunk_size or settings.NOTIFICATION_SWEEP_CHUNK_SIZE

    def sweep(self, now: datetime | None = None) -> SweepResult:
        now = now or django_timezone.now()

        notification_cutoff = now - timedelta(days=self.retention_days)
        batch_cutoff = now - timedelta(days=self.batch_retention_days)

        result = SweepResult(
            notifications_deleted=self._delete_in_chunks(
                Notification.objects.filter(created_at__lt=notification_cutoff)
            ),
            batches_deleted=self._delete_in_chunks(
                DeliveryBatch.objects.filter(
                    created_at__lt=batch_cutoff,
                    status__in=TERMINAL_BATCH_STATUSES,
                )
            ),
        )

        logger.info(
            f"Retention sweep complete: {result.notifications_deleted} notifications "
            f"older than {notification_cutoff.isoformat()}, "
            f"{result.batches_deleted} batches older than {batch_cutoff.isoformat()}",
            extra=result.to_dict(),
        )
        return result

    def _delete_in_chunks(self, queryset: QuerySet) -> int:
        model = queryset.model
        deleted = 0
        while True:
            pks = list(queryset.values_list("pk", flat=True)[: self.chunk_size])
            if not pks:
                return deleted
            count, _ = model.objects.filter(pk__in=pks).delete()
            deleted += count
