import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="DeliveryBatch",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "family_id",
                    models.CharField(
                        db_index=True,
                        help_text="Family this batch belongs to",
                        max_length=64,
                    ),
                ),
                (
                    "notification_type",
                    models.CharField(
                        choices=[
                            ("task_assigned", "Task assigned"),
                            ("task_due_soon", "Task due soon"),
                            ("task_completed", "Task completed"),
                            ("task_comment", "Task comment"),
                            ("chat_message", "Chat message"),
                            ("chat_mention", "Chat mention"),
                            ("event_reminder", "Event reminder"),
                            ("event_invitation", "Event invitation"),
                            ("shopping_item_added", "Shopping item added"),
                            ("family_invite", "Family invite"),
                            ("weekly_summary", "Weekly summary"),
                            ("system", "System"),
                        ],
                        help_text="Event category; determines the Android channel",
                        max_length=32,
                    ),
                ),
                (
                    "priority",
                    models.CharField(
                        choices=[
                            ("low", "Low"),
                            ("normal", "Normal"),
                            ("high", "High"),
                            ("urgent", "Urgent"),
                        ],
                        default="normal",
                        help_text="Priority applied to every recipient",
                        max_length=10,
                    ),
                ),
                (
                    "recipient_ids",
                    models.JSONField(
                        default=list,
                        help_text="Ordered list of recipient user ids",
                    ),
                ),
                (
                    "payload_template",
                    models.JSONField(
                        default=dict,
                        help_text="Shared payload: title, body, optional image_url and data",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("queued", "Queued"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="queued",
                        help_text="Processing status",
                        max_length=12,
                    ),
                ),
                (
                    "success_count",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Recipients the push service accepted",
                    ),
                ),
                (
                    "failure_count",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Recipients rejected by the push service or without a token",
                    ),
                ),
                (
                    "excluded_count",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Recipients skipped because they have no push token",
                    ),
                ),
                (
                    "errors",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Per-recipient failures: user_id, endpoint_token, error_code, error_message, timestamp",
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When processing finished",
                        null=True,
                    ),
                ),
            ],
            options={
                "verbose_name": "delivery batch",
                "verbose_name_plural": "delivery batches",
                "db_table": "notifications_delivery_batch",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "-created_at"],
                        name="notif_batch_status_idx",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "family_id",
                    models.CharField(
                        db_index=True,
                        help_text="Family this notification belongs to",
                        max_length=64,
                    ),
                ),
                (
                    "notification_type",
                    models.CharField(
                        choices=[
                            ("task_assigned", "Task assigned"),
                            ("task_due_soon", "Task due soon"),
                            ("task_completed", "Task completed"),
                            ("task_comment", "Task comment"),
                            ("chat_message", "Chat message"),
                            ("chat_mention", "Chat mention"),
                            ("event_reminder", "Event reminder"),
                            ("event_invitation", "Event invitation"),
                            ("shopping_item_added", "Shopping item added"),
                            ("family_invite", "Family invite"),
                            ("weekly_summary", "Weekly summary"),
                            ("system", "System"),
                        ],
                        help_text="Event category; determines the Android channel",
                        max_length=32,
                    ),
                ),
                (
                    "priority",
                    models.CharField(
                        choices=[
                            ("low", "Low"),
                            ("normal", "Normal"),
                            ("high", "High"),
                            ("urgent", "Urgent"),
                        ],
                        default="normal",
                        help_text="Notification priority; urgent is sent with high transport priority",
                        max_length=10,
                    ),
                ),
                (
                    "title",
                    models.CharField(
                        help_text="Fully rendered notification title",
                        max_length=500,
                    ),
                ),
                (
                    "body",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Fully rendered notification body",
                    ),
                ),
                (
                    "entity_type",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Type of entity opened on tap (task, message, event, ...)",
                        max_length=32,
                    ),
                ),
                (
                    "entity_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Identifier of the entity opened on tap",
                        max_length=64,
                    ),
                ),
                (
                    "action_type",
                    models.CharField(
                        blank=True,
                        default="view",
                        help_text="Action performed on tap",
                        max_length=32,
                    ),
                ),
                (
                    "extra_data",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Additional deep-link data merged into the push data payload",
                    ),
                ),
                (
                    "image_url",
                    models.URLField(
                        blank=True,
                        help_text="Optional image shown in the expanded notification",
                        max_length=1000,
                        null=True,
                    ),
                ),
                (
                    "is_read",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the recipient has read this notification (set by client)",
                    ),
                ),
                (
                    "read_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the recipient read this notification (set by client)",
                        null=True,
                    ),
                ),
                (
                    "expires_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When this notification stops being relevant",
                        null=True,
                    ),
                ),
                (
                    "delivery_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("sent", "Sent"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Push delivery status",
                        max_length=10,
                    ),
                ),
                (
                    "delivery_attempted_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the push attempt finished",
                        null=True,
                    ),
                ),
                (
                    "delivery_message_id",
                    models.CharField(
                        blank=True,
                        help_text="Message id returned by the push service",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "delivery_error_code",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Normalized error code when delivery failed",
                        max_length=50,
                    ),
                ),
                (
                    "delivery_error_message",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Error message when delivery failed",
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        help_text="User receiving this notification",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "notifications_notification",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["recipient", "is_read", "-created_at"],
                        name="notif_recipient_unread_idx",
                    ),
                    models.Index(
                        fields=["family_id", "-created_at"],
                        name="notif_family_created_idx",
                    ),
                ],
            },
        ),
    ]
