"""
Notification delivery models.

This module defines the two records the delivery pipeline works on:
- Notification: one unit of delivery intent for one recipient
- DeliveryBatch: one payload fanned out to many recipients

Design Decisions:
    - Both use UUID primary keys; ids travel through Celery and push payloads
    - recipient uses CASCADE (notifications go with the user)
    - Status columns are indexed; dispatchers filter on them in conditional
      UPDATEs so a terminal status is written at most once
    - Types and priorities are TextChoices stored as snake_case strings

Usage:
    from notifications.models import Notification, NotificationType

    notification = Notification.objects.create(
        recipient=user,
        family_id="family-1",
        notification_type=NotificationType.TASK_ASSIGNED,
        title="New task",
        body="Take out the trash",
        entity_type=EntityType.TASK,
        entity_id="task-42",
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

# =============================================================================
# Enums
# =============================================================================


class NotificationType(models.TextChoices):
    """Domain events that produce notifications."""

    TASK_ASSIGNED = "task_assigned", "Task assigned"
    TASK_DUE_SOON = "task_due_soon", "Task due soon"
    TASK_COMPLETED = "task_completed", "Task completed"
    TASK_COMMENT = "task_comment", "Task comment"
    CHAT_MESSAGE = "chat_message", "Chat message"
    CHAT_MENTION = "chat_mention", "Chat mention"
    EVENT_REMINDER = "event_reminder", "Event reminder"
    EVENT_INVITATION = "event_invitation", "Event invitation"
    SHOPPING_ITEM_ADDED = "shopping_item_added", "Shopping item added"
    FAMILY_INVITE = "family_invite", "Family invite"
    WEEKLY_SUMMARY = "weekly_summary", "Weekly summary"
    SYSTEM = "system", "System"


class NotificationPriority(models.TextChoices):
    """
    Notification priority.

    Only URGENT maps to high transport priority; everything else is sent
    with normal priority.
    """

    LOW = "low", "Low"
    NORMAL = "normal", "Normal"
    HIGH = "high", "High"
    URGENT = "urgent", "Urgent"


class DeliveryStatus(models.TextChoices):
    """
    Push delivery status of a single notification.

    State Flow:
        PENDING -> SENT
        PENDING -> FAILED
    """

    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"


class BatchStatus(models.TextChoices):
    """
    Processing status of a delivery batch.

    State Flow:
        QUEUED -> PROCESSING -> COMPLETED (processing finished, any outcome)
        QUEUED -> PROCESSING -> FAILED (transport fault, nothing attempted)
    """

    QUEUED = "queued", "Queued"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class EntityType(models.TextChoices):
    """What tapping the notification opens."""

    TASK = "task", "Task"
    MESSAGE = "message", "Message"
    EVENT = "event", "Event"
    SHOPPING_LIST = "shopping_list", "Shopping list"
    FAMILY = "family", "Family"
    SUMMARY = "summary", "Summary"


class ActionType(models.TextChoices):
    VIEW = "view", "View"
    REPLY = "reply", "Reply"
    ACCEPT = "accept", "Accept"
    COMPLETE = "complete", "Complete"


TERMINAL_BATCH_STATUSES = (BatchStatus.COMPLETED, BatchStatus.FAILED)


# =============================================================================
# Notification
# =============================================================================


class Notification(UUIDPrimaryKeyMixin, BaseModel):
    """
    One notification addressed to one family member.

    Created by upstream producers (task, chat and calendar triggers) in
    PENDING state. The single-recipient dispatcher moves it to SENT or
    FAILED exactly once. is_read/read_at belong to the client.

    Fields:
        recipient: User receiving the notification
        family_id: Family scope of the event
        notification_type: Event category, drives channel routing
        priority: Drives transport priority
        title/body: Fully rendered text
        entity_type/entity_id/action_type: Deep-link target
        extra_data: Additional deep-link data merged into the push data
        image_url: Optional large image
        delivery_*: Outcome of the push attempt

    Inherits from BaseModel:
        created_at: Timestamp (auto, indexed, drives retention)
        updated_at: Timestamp (auto)
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )

    family_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Family this notification belongs to",
    )

    notification_type = models.CharField(
        max_length=32,
        choices=NotificationType.choices,
        help_text="Event category; determines the Android channel",
    )

    priority = models.CharField(
        max_length=10,
        choices=NotificationPriority.choices,
        default=NotificationPriority.NORMAL,
        help_text="Notification priority; urgent is sent with high transport priority",
    )

    title = models.CharField(
        max_length=500,
        help_text="Fully rendered notification title",
    )

    body = models.TextField(
        blank=True,
        default="",
        help_text="Fully rendered notification body",
    )

    entity_type = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Type of entity opened on tap (task, message, event, ...)",
    )

    entity_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Identifier of the entity opened on tap",
    )

    action_type = models.CharField(
        max_length=32,
        blank=True,
        default=ActionType.VIEW,
        help_text="Action performed on tap",
    )

    extra_data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional deep-link data merged into the push data payload",
    )

    image_url = models.URLField(
        max_length=1000,
        null=True,
        blank=True,
        help_text="Optional image shown in the expanded notification",
    )

    is_read = models.BooleanField(
        default=False,
        help_text="Whether the recipient has read this notification (set by client)",
    )

    read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the recipient read this notification (set by client)",
    )

    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When this notification stops being relevant",
    )

    delivery_status = models.CharField(
        max_length=10,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.PENDING,
        db_index=True,
        help_text="Push delivery status",
    )

    delivery_attempted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the push attempt finished",
    )

    delivery_message_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Message id returned by the push service",
    )

    delivery_error_code = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Normalized error code when delivery failed",
    )

    delivery_error_message = models.TextField(
        blank=True,
        default="",
        help_text="Error message when delivery failed",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
            models.Index(
                fields=["family_id", "-created_at"],
                name="notif_family_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"Notification({self.notification_type}) -> "
            f"User {self.recipient_id} [{self.delivery_status}]"
        )

    @property
    def is_terminal(self) -> bool:
        return self.delivery_status != DeliveryStatus.PENDING


# =============================================================================
# DeliveryBatch
# =============================================================================


class DeliveryBatch(UUIDPrimaryKeyMixin, BaseModel):
    """
    One payload fanned out to many recipients with a single multicast call.

    Used when an event concerns a whole family (e.g. a completed task
    broadcast). Any personalization happens before the batch is created.

    Fields:
        family_id: Family scope of the event
        notification_type: Event category, drives channel routing
        priority: Drives transport priority
        recipient_ids: Ordered user ids; duplicates are dropped at dispatch
        payload_template: {"title", "body", "image_url"?, "data"?}
        status: Processing status
        success_count/failure_count: Per-recipient outcome counts
        excluded_count: Recipients without a push token (also in failure_count)
        errors: Ordered per-recipient failures from the push service
        processed_at: When processing finished
    """

    family_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Family this batch belongs to",
    )

    notification_type = models.CharField(
        max_length=32,
        choices=NotificationType.choices,
        help_text="Event category; determines the Android channel",
    )

    priority = models.CharField(
        max_length=10,
        choices=NotificationPriority.choices,
        default=NotificationPriority.NORMAL,
        help_text="Priority applied to every recipient",
    )

    recipient_ids = models.JSONField(
        default=list,
        help_text="Ordered list of recipient user ids",
    )

    payload_template = models.JSONField(
        default=dict,
        help_text="Shared payload: title, body, optional image_url and data",
    )

    status = models.CharField(
        max_length=12,
        choices=BatchStatus.choices,
        default=BatchStatus.QUEUED,
        db_index=True,
        help_text="Processing status",
    )

    success_count = models.PositiveIntegerField(
        default=0,
        help_text="Recipients the push service accepted",
    )

    failure_count = models.PositiveIntegerField(
        default=0,
        help_text="Recipients rejected by the push service or without a token",
    )

    excluded_count = models.PositiveIntegerField(
        default=0,
        help_text="Recipients skipped because they have no push token",
    )

    errors = models.JSONField(
        default=list,
        blank=True,
        help_text="Per-recipient failures: user_id, endpoint_token, error_code, error_message, timestamp",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When processing finished",
    )

    class Meta:
        db_table = "notifications_delivery_batch"
        verbose_name = "delivery batch"
        verbose_name_plural = "delivery batches"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["status", "-created_at"],
                name="notif_batch_status_idx",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"DeliveryBatch({self.notification_type}, "
            f"{len(self.recipient_ids or [])} recipients) [{self.status}]"
        )
