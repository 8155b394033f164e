"""
Notifications app: push delivery for family notifications.

This app provides:
- Notification and DeliveryBatch models (delivery intent and outcome)
- NotificationService for upstream producers
- Push gateways (FCM, console) behind one protocol
- Single-recipient and batch dispatchers run from Celery tasks
- A daily retention sweep scheduled with django-celery-beat

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        recipient=user,
        family_id="family-1",
        notification_type="chat_mention",
        title="Mia mentioned you",
        entity_type="message",
        entity_id="msg-9",
    )

    if result.success:
        notification = result.data
"""
