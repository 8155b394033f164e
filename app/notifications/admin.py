"""
Django admin configuration for notification models.

Registers:
- Notification
- DeliveryBatch

Both are read-only: rows are written by producers and dispatchers, and the
admin is for support staff tracing why a push did or did not arrive.
"""

from django.contrib import admin

from notifications.models import DeliveryBatch, Notification


class ReadOnlyAdminMixin:
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Notification)
class NotificationAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Notification records with their delivery outcome."""

    list_display = [
        "id",
        "recipient",
        "notification_type",
        "priority",
        "delivery_status",
        "delivery_error_code",
        "created_at",
    ]
    list_filter = ["delivery_status", "notification_type", "priority"]
    search_fields = ["id", "recipient__email", "family_id", "entity_id"]
    raw_id_fields = ["recipient"]
    date_hierarchy = "created_at"
    fieldsets = (
        (
            None,
            {
                "fields": (
                    "id",
                    "recipient",
                    "family_id",
                    "notification_type",
                    "priority",
                ),
            },
        ),
        (
            "Content",
            {
                "fields": (
                    "title",
                    "body",
                    "image_url",
                    "entity_type",
                    "entity_id",
                    "action_type",
                    "extra_data",
                ),
            },
        ),
        (
            "Delivery",
            {
                "fields": (
                    "delivery_status",
                    "delivery_attempted_at",
                    "delivery_message_id",
                    "delivery_error_code",
                    "delivery_error_message",
                ),
            },
        ),
        (
            "Lifecycle",
            {
                "fields": ("is_read", "read_at", "expires_at", "created_at", "updated_at"),
            },
        ),
    )
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(DeliveryBatch)
class DeliveryBatchAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Delivery batches with per-recipient error details."""

    list_display = [
        "id",
        "notification_type",
        "family_id",
        "status",
        "success_count",
        "failure_count",
        "excluded_count",
        "processed_at",
    ]
    list_filter = ["status", "notification_type"]
    search_fields = ["id", "family_id"]
    date_hierarchy = "created_at"
    readonly_fields = ["id", "created_at", "updated_at"]
