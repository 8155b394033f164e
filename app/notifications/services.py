"""
Notification service layer.

Entry points for upstream producers (task, chat and calendar triggers,
schedulers). Producers decide that an event deserves a notification and
render its text; this service validates the request and stores it. Storing
the row is what triggers delivery (see notifications.signals).

Services:
    NotificationService: Create notifications and delivery batches

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Delivery is never attempted inline; the post_save signal queues it

Usage:
    from notifications.services import NotificationService

    # One recipient
    result = NotificationService.create_notification(
        recipient=user,
        family_id="family-1",
        notification_type="task_assigned",
        title="New task",
        body="Mia assigned you: Take out the trash",
        entity_type="task",
        entity_id="task-42",
    )

    # Whole family, one multicast
    result = NotificationService.create_batch(
        family_id="family-1",
        notification_type="task_completed",
        recipient_ids=[u.pk for u in family_members],
        payload_template={
            "title": "Task completed",
            "body": "Dishes are done",
            "data": {"entity_type": "task", "entity_id": "task-42"},
        },
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult
from notifications.models import (
    ActionType,
    DeliveryBatch,
    Notification,
    NotificationPriority,
    NotificationType,
)

if TYPE_CHECKING:
    from datetime import datetime

    from users.models import User


class NotificationService(BaseService):
    """
    Service for creating delivery intent.

    Methods:
        create_notification: Store one notification for one recipient
        create_batch: Store one payload for many recipients
    """

    @classmethod
    def _validate_type_and_priority(
        cls, notification_type: str, priority: str
    ) -> ServiceResult | None:
        if notification_type not in NotificationType.values:
            cls.get_logger().warning(f"Unknown notification type: {notification_type}")
            return ServiceResult.failure(
                f"Unknown notification type: {notification_type}",
                error_code="INVALID_TYPE",
            )
        if priority not in NotificationPriority.values:
            return ServiceResult.failure(
                f"Unknown priority: {priority}",
                error_code="INVALID_PRIORITY",
            )
        return None

    @classmethod
    def create_notification(
        cls,
        recipient: User,
        family_id: str,
        notification_type: str,
        title: str,
        body: str = "",
        priority: str = NotificationPriority.NORMAL,
        entity_type: str = "",
        entity_id: str = "",
        action_type: str = ActionType.VIEW,
        extra_data: dict | None = None,
        image_url: str | None = None,
        expires_at: datetime | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a pending notification for one recipient.

        Args:
            recipient: User receiving the notification
            family_id: Family scope of the event
            notification_type: NotificationType value
            title/body: Rendered text
            priority: NotificationPriority value
            entity_type/entity_id/action_type: Deep-link target
            extra_data: Additional deep-link data
            image_url: Optional image
            expires_at: Optional expiry

        Returns:
            ServiceResult with the created Notification

        Error codes:
            VALIDATION_ERROR: Missing title or family_id
            INVALID_TYPE: Unknown notification type
            INVALID_PRIORITY: Unknown priority
        """
        validation = cls.validate_required(title=title, family_id=family_id)
        if validation is not None:
            return validation

        validation = cls._validate_type_and_priority(notification_type, priority)
        if validation is not None:
            return validation

        notification = Notification.objects.create(
            recipient=recipient,
            family_id=family_id,
            notification_type=notification_type,
            priority=priority,
            title=title,
            body=body or "",
            entity_type=entity_type or "",
            entity_id=entity_id or "",
            action_type=action_type or ActionType.VIEW,
            extra_data=extra_data or {},
            image_url=image_url,
            expires_at=expires_at,
        )

        cls.get_logger().info(
            f"Created notification {notification.id} ({notification_type}) "
            f"for user {recipient.pk}"
        )
        return ServiceResult.success(notification)

    @classmethod
    def create_batch(
        cls,
        family_id: str,
        notification_type: str,
        recipient_ids: list,
        payload_template: dict,
        priority: str = NotificationPriority.NORMAL,
    ) -> ServiceResult[DeliveryBatch]:
        """
        Create a queued delivery batch.

        Recipient ids are stored as given (as strings); duplicates are
        dropped when the batch is dispatched.

        Error codes:
            VALIDATION_ERROR: Missing family_id
            INVALID_TYPE: Unknown notification type
            INVALID_PRIORITY: Unknown priority
            INVALID_PAYLOAD: Template without a title
            NO_RECIPIENTS: Empty recipient list
        """
        validation = cls.validate_required(family_id=family_id)
        if validation is not None:
            return validation

        validation = cls._validate_type_and_priority(notification_type, priority)
        if validation is not None:
            return validation

        if not isinstance(payload_template, dict) or not payload_template.get("title"):
            return ServiceResult.failure(
                "Payload template must include a title",
                error_code="INVALID_PAYLOAD",
            )

        if not recipient_ids:
            return ServiceResult.failure(
                "Batch has no recipients",
                error_code="NO_RECIPIENTS",
            )

        batch = DeliveryBatch.objects.create(
            family_id=family_id,
            notification_type=notification_type,
            priority=priority,
            recipient_ids=[str(user_id) for user_id in recipient_ids],
            payload_template=payload_template,
        )

        cls.get_logger().info(
            f"Created delivery batch {batch.id} ({notification_type}) "
            f"for {len(batch.recipient_ids)} recipients"
        )
        return ServiceResult.success(batch)
