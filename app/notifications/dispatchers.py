"""
Notification dispatchers.

Two dispatchers turn stored delivery intent into push sends:

NotificationDispatcher:
    One Notification, one recipient, at most one gateway call.

BatchDispatcher:
    One DeliveryBatch, many recipients, one multicast call, per-recipient
    reconciliation.

Both take the gateway as a constructor argument. Both are idempotent under
at-least-once triggering: only PENDING notifications and QUEUED batches are
processed, and status changes are conditional UPDATEs, so a duplicate
invocation makes zero gateway calls and changes nothing.

Failures are recorded on the row rather than raised. The return value is a
small outcome object for logging and task results.

Usage:
    from notifications.dispatchers import NotificationDispatcher
    from notifications.gateways import get_gateway

    with get_gateway() as gateway:
        outcome = NotificationDispatcher(gateway).dispatch(notification_id)
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass

from django.utils import timezone as django_timezone

from notifications.gateways.base import (
    UNKNOWN,
    PushGateway,
    PushGatewayError,
    PushResult,
)
from notifications.models import (
    BatchStatus,
    DeliveryBatch,
    DeliveryStatus,
    Notification,
)
from notifications.routing import build_batch_message, build_notification_message
from users.services import PushTokenService

logger = logging.getLogger(__name__)

NO_ENDPOINT = "no_endpoint"

# Outcome statuses beyond the row statuses
SKIPPED = "skipped"
NOT_FOUND = "not_found"


@dataclass
class DispatchOutcome:
    notification_id: str
    status: str
    message_id: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BatchOutcome:
    batch_id: str
    status: str
    success_count: int = 0
    failure_count: int = 0
    excluded_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def is_valid_id(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def dedupe_recipients(recipient_ids) -> list[str]:
    """
    Drop duplicate recipients, keeping first occurrence order.

    Ids are compared in canonical form, so "5", "05" and 5 are one recipient.
    """
    canonical = (
        PushTokenService.canonical_user_id(user_id) for user_id in recipient_ids or []
    )
    return list(dict.fromkeys(user_id for user_id in canonical if user_id is not None))


# =============================================================================
# Single-Recipient Dispatcher
# =============================================================================


class NotificationDispatcher:
    """
    Deliver one Notification to its recipient's current push token.

    Flow:
        1. Skip unless the record exists and is PENDING
        2. Resolve the recipient's push token; none -> FAILED (no_endpoint)
        3. Build the routed message and call send_one exactly once
        4. Write SENT or FAILED with a conditional UPDATE
        5. On a permanent endpoint error, remove that token from the profile
    """

    def __init__(self, gateway: PushGateway):
        self.gateway = gateway

    def dispatch(self, notification_id) -> DispatchOutcome:
        notification_id = str(notification_id)
        if not is_valid_id(notification_id):
            logger.warning(f"Invalid notification id {notification_id!r}")
            return DispatchOutcome(notification_id, NOT_FOUND)

        try:
            notification = Notification.objects.get(pk=notification_id)
        except Notification.DoesNotExist:
            logger.warning(f"Notification {notification_id} not found")
            return DispatchOutcome(notification_id, NOT_FOUND)

        if notification.delivery_status != DeliveryStatus.PENDING:
            logger.info(
                f"Notification {notification_id} status is "
                f"{notification.delivery_status}, skipping"
            )
            return DispatchOutcome(notification_id, SKIPPED)

        user_id = notification.recipient_id
        token = PushTokenService.get_token(user_id)
        if not token:
            self._finalize(
                notification_id,
                PushResult.failed(NO_ENDPOINT, "Recipient has no registered push token"),
            )
            logger.info(
                f"Notification {notification_id} not sent: user {user_id} has no push token",
                extra={"notification_id": notification_id, "user_id": str(user_id)},
            )
            return DispatchOutcome(
                notification_id, DeliveryStatus.FAILED, error_code=NO_ENDPOINT
            )

        message = build_notification_message(notification)

        try:
            result = self.gateway.send_one(token, message)
        except Exception as e:
            logger.exception(
                f"Unexpected error sending push for notification {notification_id}: {e}",
                extra={"notification_id": notification_id},
            )
            result = PushResult.failed(UNKNOWN, str(e))

        self._finalize(notification_id, result)

        if result.success:
            logger.info(
                f"Push sent for notification {notification_id}, "
                f"message_id={result.message_id}",
                extra={"notification_id": notification_id},
            )
            return DispatchOutcome(
                notification_id, DeliveryStatus.SENT, message_id=result.message_id
            )

        logger.warning(
            f"Push failed for notification {notification_id}: "
            f"{result.error_code} - {result.error_message}",
            extra={
                "notification_id": notification_id,
                "user_id": str(user_id),
                "error_code": result.error_code,
            },
        )
        if result.is_permanent_endpoint_error:
            self._remove_token(user_id, token)

        return DispatchOutcome(
            notification_id, DeliveryStatus.FAILED, error_code=result.error_code
        )

    def _finalize(self, notification_id: str, result: PushResult) -> bool:
        """
        Write the terminal delivery status if the record is still PENDING.

        Returns False when another invocation finished first or the record
        was deleted mid-dispatch.
        """
        now = django_timezone.now()
        if result.success:
            fields = {
                "delivery_status": DeliveryStatus.SENT,
                "delivery_message_id": result.message_id,
            }
        else:
            fields = {
                "delivery_status": DeliveryStatus.FAILED,
                "delivery_error_code": result.error_code or UNKNOWN,
                "delivery_error_message": result.error_message or "",
            }

        updated = Notification.objects.filter(
            pk=notification_id,
            delivery_status=DeliveryStatus.PENDING,
        ).update(delivery_attempted_at=now, updated_at=now, **fields)

        if not updated:
            logger.info(
                f"Notification {notification_id} was finalized or deleted "
                "by another process, outcome not written"
            )
        return bool(updated)

    def _remove_token(self, user_id, token: str) -> None:
        # Cleanup failures never change the recorded outcome
        try:
            PushTokenService.remove_token_if_matches(user_id, token)
        except Exception:
            logger.exception(
                f"Failed to remove invalid push token for user {user_id}",
                extra={"user_id": str(user_id)},
            )


# =============================================================================
# Batch Dispatcher
# =============================================================================


def _queue_token_removal(user_id: str, token: str) -> None:
    from notifications.tasks import remove_invalid_push_token

    remove_invalid_push_token.delay(user_id, token)


class BatchDispatcher:
    """
    Deliver one DeliveryBatch with a single multicast call.

    Flow:
        1. Claim: QUEUED -> PROCESSING (conditional UPDATE); lose -> skip
        2. Deduplicate recipients, resolve all tokens in one query
        3. No tokens at all -> COMPLETED, every recipient counted as failed
        4. send_many once; pair each result with its (user_id, token)
        5. COMPLETED with counts and ordered errors
        6. Queue token removal for permanent endpoint errors

    A transport fault in step 2 or 4 marks the batch FAILED with zero
    counts; the caller creates a new batch to retry.

    Accounting:
        success_count + failure_count == number of unique recipients.
        Recipients without a token are counted in failure_count and in
        excluded_count.

    Args:
        gateway: Push gateway used for the multicast call
        schedule_token_removal: Called with (user_id, token) for each
            permanently invalid token after the batch is finalized;
            defaults to queueing remove_invalid_push_token
    """

    def __init__(
        self,
        gateway: PushGateway,
        schedule_token_removal: Callable[[str, str], None] | None = None,
    ):
        self.gateway = gateway
        self.schedule_token_removal = schedule_token_removal or _queue_token_removal

    def dispatch(self, batch_id) -> BatchOutcome:
        batch_id = str(batch_id)
        if not is_valid_id(batch_id):
            logger.warning(f"Invalid batch id {batch_id!r}")
            return BatchOutcome(batch_id, NOT_FOUND)

        claimed = DeliveryBatch.objects.filter(
            pk=batch_id,
            status=BatchStatus.QUEUED,
        ).update(status=BatchStatus.PROCESSING, updated_at=django_timezone.now())

        if not claimed:
            if DeliveryBatch.objects.filter(pk=batch_id).exists():
                logger.info(f"Batch {batch_id} already claimed, skipping")
                return BatchOutcome(batch_id, SKIPPED)
            logger.warning(f"Batch {batch_id} not found")
            return BatchOutcome(batch_id, NOT_FOUND)

        try:
            batch = DeliveryBatch.objects.get(pk=batch_id)
            recipients = dedupe_recipients(batch.recipient_ids)
            tokens = PushTokenService.get_tokens(recipients)
            targets = [(user_id, tokens[user_id]) for user_id in recipients if user_id in tokens]
            excluded_count = len(recipients) - len(targets)

            if not targets:
                return self._complete(
                    batch_id,
                    success_count=0,
                    failure_count=len(recipients),
                    excluded_count=excluded_count,
                    errors=[],
                )

            message = build_batch_message(batch)
            results = self.gateway.send_many([token for _, token in targets], message)

            if len(results) != len(targets):
                raise PushGatewayError(
                    "Gateway returned a result count that does not match the tokens sent",
                    details={"expected": len(targets), "received": len(results)},
                )
        except PushGatewayError as e:
            logger.error(
                f"Batch {batch_id} push call failed: {e}",
                extra={"batch_id": batch_id, **e.to_dict()},
            )
            return self._fail(batch_id)
        except Exception as e:
            logger.exception(
                f"Batch {batch_id} failed before reconciliation: {e}",
                extra={"batch_id": batch_id},
            )
            return self._fail(batch_id)

        success_count = 0
        errors = []
        invalid_tokens = []
        timestamp = django_timezone.now().isoformat()

        for (user_id, token), result in zip(targets, results):
            if result.success:
                success_count += 1
                continue

            errors.append(
                {
                    "user_id": user_id,
                    "endpoint_token": token,
                    "error_code": result.error_code,
                    "error_message": result.error_message,
                    "timestamp": timestamp,
                }
            )
            if result.is_permanent_endpoint_error:
                invalid_tokens.append((user_id, token))

        outcome = self._complete(
            batch_id,
            success_count=success_count,
            failure_count=len(recipients) - success_count,
            excluded_count=excluded_count,
            errors=errors,
        )

        for user_id, token in invalid_tokens:
            try:
                self.schedule_token_removal(user_id, token)
            except Exception:
                logger.exception(
                    f"Failed to schedule push token removal for user {user_id}",
                    extra={"batch_id": batch_id, "user_id": user_id},
                )

        return outcome

    def _complete(
        self,
        batch_id: str,
        success_count: int,
        failure_count: int,
        excluded_count: int,
        errors: list[dict],
    ) -> BatchOutcome:
        now = django_timezone.now()
        DeliveryBatch.objects.filter(pk=batch_id, status=BatchStatus.PROCESSING).update(
            status=BatchStatus.COMPLETED,
            success_count=success_count,
            failure_count=failure_count,
            excluded_count=excluded_count,
            errors=errors,
            processed_at=now,
            updated_at=now,
        )
        logger.info(
            f"Batch {batch_id} completed: {success_count} sent, "
            f"{failure_count} failed ({excluded_count} without push token)",
            extra={
                "batch_id": batch_id,
                "success_count": success_count,
                "failure_count": failure_count,
                "excluded_count": excluded_count,
            },
        )
        return BatchOutcome(
            batch_id,
            BatchStatus.COMPLETED,
            success_count=success_count,
            failure_count=failure_count,
            excluded_count=excluded_count,
        )

    def _fail(self, batch_id: str) -> BatchOutcome:
        now = django_timezone.now()
        DeliveryBatch.objects.filter(pk=batch_id, status=BatchStatus.PROCESSING).update(
            status=BatchStatus.FAILED,
            success_count=0,
            failure_count=0,
            excluded_count=0,
            errors=[],
            processed_at=now,
            updated_at=now,
        )
        return BatchOutcome(batch_id, BatchStatus.FAILED)
