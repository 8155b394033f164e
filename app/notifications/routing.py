"""
Channel routing and push payload building.

Every notification type maps to one Android notification channel so users
can mute categories on the device. Types without an entry (and "system")
land on the "default" channel.

Payload layout:
    notification: title, body, image
    data:         notification_id, entity_type, entity_id, action_type
                  ("view" unless set), plus any extra data; all strings
    android:      priority "high" for urgent notifications, else "normal";
                  channel_id from the table below; tag = entity_id
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from notifications.gateways.base import PushMessage
from notifications.models import ActionType, NotificationPriority, NotificationType

if TYPE_CHECKING:
    from notifications.models import DeliveryBatch, Notification

DEFAULT_CHANNEL = "default"

CHANNEL_MAP: dict[str, str] = {
    NotificationType.TASK_ASSIGNED: "tasks",
    NotificationType.TASK_DUE_SOON: "tasks",
    NotificationType.TASK_COMPLETED: "tasks",
    NotificationType.TASK_COMMENT: "tasks",
    NotificationType.CHAT_MESSAGE: "messages",
    NotificationType.CHAT_MENTION: "mentions",
    NotificationType.EVENT_REMINDER: "events",
    NotificationType.EVENT_INVITATION: "events",
    NotificationType.SHOPPING_ITEM_ADDED: "shopping",
    NotificationType.FAMILY_INVITE: "family",
    NotificationType.WEEKLY_SUMMARY: "summaries",
}

HIGH_PRIORITY = "high"
NORMAL_PRIORITY = "normal"


def get_channel_id(notification_type: str) -> str:
    return CHANNEL_MAP.get(notification_type, DEFAULT_CHANNEL)


def get_transport_priority(priority: str) -> str:
    if priority == NotificationPriority.URGENT:
        return HIGH_PRIORITY
    return NORMAL_PRIORITY


def stringify_data(data: dict) -> dict[str, str]:
    """FCM data payloads only carry string values; drop None entries."""
    return {str(key): str(value) for key, value in data.items() if value is not None}


def build_notification_message(notification: Notification) -> PushMessage:
    """Build the routed push message for a single notification record."""
    data = {
        "notification_id": notification.id,
        "notification_type": notification.notification_type,
        "entity_type": notification.entity_type,
        "entity_id": notification.entity_id,
        "action_type": notification.action_type or ActionType.VIEW,
    }
    data.update(notification.extra_data or {})

    return PushMessage(
        title=notification.title,
        body=notification.body,
        channel_id=get_channel_id(notification.notification_type),
        priority=get_transport_priority(notification.priority),
        data=stringify_data(data),
        image_url=notification.image_url or None,
        tag=notification.entity_id or None,
    )


def build_batch_message(batch: DeliveryBatch) -> PushMessage:
    """
    Build the shared push message for a delivery batch.

    payload_template keys: title, body, image_url (optional), data (optional).
    """
    template = batch.payload_template or {}
    data = {
        "batch_id": batch.id,
        "notification_type": batch.notification_type,
    }
    data.update(template.get("data") or {})
    data.setdefault("action_type", ActionType.VIEW)
    payload = stringify_data(data)

    return PushMessage(
        title=template.get("title", ""),
        body=template.get("body", ""),
        channel_id=get_channel_id(batch.notification_type),
        priority=get_transport_priority(batch.priority),
        data=payload,
        image_url=template.get("image_url") or None,
        tag=payload.get("entity_id") or None,
    )
