"""
Tests for the single-recipient and batch dispatchers.

Tests cover:
- Single dispatch: success, no endpoint, rejections, gateway exceptions
- Idempotency of both dispatchers under repeated invocation
- Push token cleanup on permanent (not transient) failures
- Batch accounting, deduplication, ordering and hard failures

Usage:
    pytest app/notifications/tests/test_dispatchers.py -v
"""

import uuid

import pytest
from django.utils import timezone

from notifications.dispatchers import (
    NO_ENDPOINT,
    NOT_FOUND,
    SKIPPED,
    BatchDispatcher,
    NotificationDispatcher,
    dedupe_recipients,
)
from notifications.gateways.base import PushGatewayError, PushResult
from notifications.models import (
    BatchStatus,
    DeliveryBatch,
    DeliveryStatus,
    Notification,
    NotificationType,
)
from notifications.tests.factories import DeliveryBatchFactory, NotificationFactory
from users.models import Profile
from users.services import PushTokenService
from users.tests.factories import UserFactory, with_push_token


def token_of(user):
    return Profile.objects.get(user=user).push_token


def ids(*users):
    return [str(u.pk) for u in users]


# =============================================================================
# Single-Recipient Dispatcher
# =============================================================================


@pytest.mark.django_db
class TestNotificationDispatch:
    def test_success_records_message_id(self, fake_gateway, user_with_token):
        notification = NotificationFactory(recipient=user_with_token)
        fake_gateway.script_one(PushResult.sent("msg-1"))

        outcome = NotificationDispatcher(fake_gateway).dispatch(notification.id)

        notification.refresh_from_db()
        assert outcome.status == "sent"
        assert outcome.message_id == "msg-1"
        assert notification.delivery_status == DeliveryStatus.SENT
        assert notification.delivery_message_id == "msg-1"
        assert notification.delivery_attempted_at is not None
        assert notification.delivery_error_code == ""

    def test_sends_routed_message_to_recipient_token(self, fake_gateway, user_with_token):
        notification = NotificationFactory(
            recipient=user_with_token,
            notification_type=NotificationType.CHAT_MENTION,
        )

        NotificationDispatcher(fake_gateway).dispatch(notification.id)

        assert len(fake_gateway.one_calls) == 1
        token, message = fake_gateway.one_calls[0]
        assert token == "tok-A"
        assert message.channel_id == "mentions"
        assert message.data["notification_id"] == str(notification.id)

    def test_no_endpoint_fails_without_gateway_call(self, fake_gateway, user):
        notification = NotificationFactory(recipient=user)

        outcome = NotificationDispatcher(fake_gateway).dispatch(notification.id)

        notification.refresh_from_db()
        assert fake_gateway.call_count == 0
        assert outcome.status == "failed"
        assert outcome.error_code == NO_ENDPOINT
        assert notification.delivery_status == DeliveryStatus.FAILED
        assert notification.delivery_error_code == NO_ENDPOINT
        assert notification.delivery_attempted_at is not None

    def test_permanent_failure_removes_token(self, fake_gateway, user_with_token):
        notification = NotificationFactory(recipient=user_with_token)
        fake_gateway.script_one(PushResult.failed("unregistered", "Requested entity was not found."))

        outcome = NotificationDispatcher(fake_gateway).dispatch(notification.id)

        notification.refresh_from_db()
        assert outcome.error_code == "unregistered"
        assert notification.delivery_status == DeliveryStatus.FAILED
        assert notification.delivery_error_code == "unregistered"
        assert notification.delivery_error_message == "Requested entity was not found."
        assert token_of(user_with_token) is None

    def test_invalid_token_also_removes_token(self, fake_gateway, user_with_token):
        notification = NotificationFactory(recipient=user_with_token)
        fake_gateway.script_one(PushResult.failed("invalid_token"))

        NotificationDispatcher(fake_gateway).dispatch(notification.id)

        assert token_of(user_with_token) is None

    @pytest.mark.parametrize("code", ["rate_limited", "unavailable", "internal", "unknown"])
    def test_transient_failure_keeps_token(self, fake_gateway, user_with_token, code):
        notification = NotificationFactory(recipient=user_with_token)
        fake_gateway.script_one(PushResult.failed(code, "try again"))

        NotificationDispatcher(fake_gateway).dispatch(notification.id)

        notification.refresh_from_db()
        assert notification.delivery_status == DeliveryStatus.FAILED
        assert notification.delivery_error_code == code
        assert token_of(user_with_token) == "tok-A"

    def test_gateway_exception_is_recorded_as_unknown(self, fake_gateway, user_with_token):
        notification = NotificationFactory(recipient=user_with_token)
        fake_gateway.script_one(error=RuntimeError("socket closed"))

        outcome = NotificationDispatcher(fake_gateway).dispatch(notification.id)

        notification.refresh_from_db()
        assert outcome.status == "failed"
        assert notification.delivery_status == DeliveryStatus.FAILED
        assert notification.delivery_error_code == "unknown"
        assert "socket closed" in notification.delivery_error_message
        assert token_of(user_with_token) == "tok-A"

    def test_newer_token_is_not_removed(self, fake_gateway, user_with_token, mocker):
        """A token registered while the send was in flight survives cleanup."""
        notification = NotificationFactory(recipient=user_with_token)

        def rotate_then_reject(token, message):
            with_push_token(user_with_token, "tok-B")
            return PushResult.failed("unregistered")

        mocker.patch.object(fake_gateway, "send_one", side_effect=rotate_then_reject)

        NotificationDispatcher(fake_gateway).dispatch(notification.id)

        assert token_of(user_with_token) == "tok-B"

    def test_cleanup_error_does_not_change_outcome(self, fake_gateway, user_with_token, mocker):
        notification = NotificationFactory(recipient=user_with_token)
        fake_gateway.script_one(PushResult.failed("unregistered"))
        mocker.patch.object(
            PushTokenService,
            "remove_token_if_matches",
            side_effect=RuntimeError("database went away"),
        )

        outcome = NotificationDispatcher(fake_gateway).dispatch(notification.id)

        notification.refresh_from_db()
        assert outcome.status == "failed"
        assert notification.delivery_error_code == "unregistered"

    def test_missing_record(self, fake_gateway):
        outcome = NotificationDispatcher(fake_gateway).dispatch(uuid.uuid4())

        assert outcome.status == NOT_FOUND
        assert fake_gateway.call_count == 0

    def test_malformed_id(self, fake_gateway, db):
        outcome = NotificationDispatcher(fake_gateway).dispatch("not-a-uuid")

        assert outcome.status == NOT_FOUND
        assert fake_gateway.call_count == 0

    def test_deleted_mid_dispatch(self, fake_gateway, user_with_token, mocker):
        notification = NotificationFactory(recipient=user_with_token)

        def delete_then_send(token, message):
            Notification.objects.filter(pk=notification.pk).delete()
            return PushResult.sent("msg-1")

        mocker.patch.object(fake_gateway, "send_one", side_effect=delete_then_send)

        outcome = NotificationDispatcher(fake_gateway).dispatch(notification.id)

        assert outcome.status == "sent"
        assert not Notification.objects.filter(pk=notification.pk).exists()


@pytest.mark.django_db
class TestNotificationDispatchIdempotency:
    @pytest.mark.parametrize("status", [DeliveryStatus.SENT, DeliveryStatus.FAILED])
    def test_terminal_record_is_untouched(self, fake_gateway, user_with_token, status):
        notification = NotificationFactory(
            recipient=user_with_token,
            delivery_status=status,
            delivery_message_id="msg-0",
            delivery_attempted_at=timezone.now(),
        )
        before = Notification.objects.filter(pk=notification.pk).values().get()

        outcome = NotificationDispatcher(fake_gateway).dispatch(notification.id)

        assert outcome.status == SKIPPED
        assert fake_gateway.call_count == 0
        assert Notification.objects.filter(pk=notification.pk).values().get() == before

    def test_second_dispatch_makes_no_call(self, fake_gateway, user_with_token):
        notification = NotificationFactory(recipient=user_with_token)
        dispatcher = NotificationDispatcher(fake_gateway)

        dispatcher.dispatch(notification.id)
        second = dispatcher.dispatch(notification.id)

        assert second.status == SKIPPED
        assert len(fake_gateway.one_calls) == 1


# =============================================================================
# Batch Dispatcher
# =============================================================================


@pytest.fixture
def remove_now():
    """Run token removal inline instead of queueing a task."""
    return PushTokenService.remove_token_if_matches


@pytest.mark.django_db
class TestBatchDispatch:
    def test_three_recipient_scenario(self, fake_gateway, remove_now):
        """No token, success, permanent rejection."""
        no_token = UserFactory()
        delivered = with_push_token(UserFactory(), "tok-ok")
        stale = with_push_token(UserFactory(), "tok-stale")
        fake_gateway.script_token("tok-stale", PushResult.failed("unregistered", "gone"))
        batch = DeliveryBatchFactory(recipient_ids=ids(no_token, delivered, stale))

        outcome = BatchDispatcher(fake_gateway, schedule_token_removal=remove_now).dispatch(
            batch.id
        )

        batch.refresh_from_db()
        assert outcome.status == "completed"
        assert batch.status == BatchStatus.COMPLETED
        assert batch.success_count == 1
        assert batch.failure_count == 2
        assert batch.excluded_count == 1
        assert batch.processed_at is not None
        assert token_of(stale) is None
        assert token_of(delivered) == "tok-ok"

        assert len(batch.errors) == 1
        error = batch.errors[0]
        assert error["user_id"] == str(stale.pk)
        assert error["endpoint_token"] == "tok-stale"
        assert error["error_code"] == "unregistered"
        assert error["error_message"] == "gone"
        assert "timestamp" in error

    def test_one_multicast_call_with_resolved_tokens(self, fake_gateway, remove_now):
        a = with_push_token(UserFactory(), "tok-a")
        b = UserFactory()
        c = with_push_token(UserFactory(), "tok-c")
        batch = DeliveryBatchFactory(
            recipient_ids=ids(a, b, c),
            notification_type=NotificationType.CHAT_MESSAGE,
        )

        BatchDispatcher(fake_gateway, schedule_token_removal=remove_now).dispatch(batch.id)

        assert fake_gateway.one_calls == []
        assert len(fake_gateway.many_calls) == 1
        tokens, message = fake_gateway.many_calls[0]
        assert tokens == ["tok-a", "tok-c"]
        assert message.channel_id == "messages"
        assert message.data["batch_id"] == str(batch.id)

    def test_duplicates_are_sent_once_and_counted_once(self, fake_gateway, remove_now):
        a = with_push_token(UserFactory(), "tok-a")
        b = with_push_token(UserFactory(), "tok-b")
        c = UserFactory()
        batch = DeliveryBatchFactory(recipient_ids=ids(a, b, a, c, b, a))

        BatchDispatcher(fake_gateway, schedule_token_removal=remove_now).dispatch(batch.id)

        batch.refresh_from_db()
        tokens, _ = fake_gateway.many_calls[0]
        assert tokens == ["tok-a", "tok-b"]
        assert batch.success_count + batch.failure_count == len(dedupe_recipients(batch.recipient_ids))
        assert (batch.success_count, batch.failure_count) == (2, 1)

    def test_equivalent_id_forms_are_one_recipient(self, fake_gateway, remove_now):
        """Zero-padded, padded and integer forms address the same user."""
        user = with_push_token(UserFactory(), "tok-a")
        pk = str(user.pk)
        batch = DeliveryBatchFactory(recipient_ids=[pk, "0" + pk, " " + pk, user.pk])

        BatchDispatcher(fake_gateway, schedule_token_removal=remove_now).dispatch(batch.id)

        batch.refresh_from_db()
        tokens, _ = fake_gateway.many_calls[0]
        assert tokens == ["tok-a"]
        assert (batch.success_count, batch.failure_count, batch.excluded_count) == (1, 0, 0)

    def test_accounting_with_mixed_results(self, fake_gateway, remove_now):
        users = [with_push_token(UserFactory(), f"tok-{i}") for i in range(4)]
        users.append(UserFactory())
        fake_gateway.script_token("tok-1", PushResult.failed("rate_limited"))
        fake_gateway.script_token("tok-3", PushResult.failed("invalid_token"))
        batch = DeliveryBatchFactory(recipient_ids=ids(*users))

        BatchDispatcher(fake_gateway, schedule_token_removal=remove_now).dispatch(batch.id)

        batch.refresh_from_db()
        assert batch.success_count == 2
        assert batch.failure_count == 3
        assert batch.excluded_count == 1
        assert [e["user_id"] for e in batch.errors] == ids(users[1], users[3])
        assert token_of(users[1]) == "tok-1"
        assert token_of(users[3]) is None

    def test_nobody_has_a_token(self, fake_gateway):
        batch = DeliveryBatchFactory(recipient_ids=ids(UserFactory(), UserFactory()))

        outcome = BatchDispatcher(fake_gateway).dispatch(batch.id)

        batch.refresh_from_db()
        assert fake_gateway.call_count == 0
        assert outcome.status == "completed"
        assert batch.status == BatchStatus.COMPLETED
        assert batch.success_count == 0
        assert batch.failure_count == 2
        assert batch.excluded_count == 2
        assert batch.processed_at is not None

    def test_unknown_and_malformed_recipients_count_as_failures(self, fake_gateway):
        a = with_push_token(UserFactory(), "tok-a")
        batch = DeliveryBatchFactory(recipient_ids=[str(a.pk), "999999", "not-a-user"])

        BatchDispatcher(fake_gateway).dispatch(batch.id)

        batch.refresh_from_db()
        assert batch.status == BatchStatus.COMPLETED
        assert (batch.success_count, batch.failure_count) == (1, 2)

    def test_default_removal_queues_task(self, fake_gateway, mocker):
        delay = mocker.patch("notifications.tasks.remove_invalid_push_token.delay")
        stale = with_push_token(UserFactory(), "tok-stale")
        fake_gateway.script_token("tok-stale", PushResult.failed("unregistered"))
        batch = DeliveryBatchFactory(recipient_ids=ids(stale))

        BatchDispatcher(fake_gateway).dispatch(batch.id)

        delay.assert_called_once_with(str(stale.pk), "tok-stale")

    def test_transient_failure_queues_nothing(self, fake_gateway, mocker):
        schedule = mocker.Mock()
        user = with_push_token(UserFactory(), "tok-a")
        fake_gateway.script_token("tok-a", PushResult.failed("unavailable"))
        batch = DeliveryBatchFactory(recipient_ids=ids(user))

        BatchDispatcher(fake_gateway, schedule_token_removal=schedule).dispatch(batch.id)

        schedule.assert_not_called()
        assert token_of(user) == "tok-a"

    def test_queueing_error_does_not_change_outcome(self, fake_gateway, mocker):
        schedule = mocker.Mock(side_effect=RuntimeError("broker down"))
        stale = with_push_token(UserFactory(), "tok-stale")
        fake_gateway.script_token("tok-stale", PushResult.failed("unregistered"))
        batch = DeliveryBatchFactory(recipient_ids=ids(stale))

        outcome = BatchDispatcher(fake_gateway, schedule_token_removal=schedule).dispatch(
            batch.id
        )

        batch.refresh_from_db()
        assert outcome.status == "completed"
        assert batch.status == BatchStatus.COMPLETED
        assert batch.failure_count == 1


@pytest.mark.django_db
class TestBatchHardFailure:
    def test_multicast_exception_marks_batch_failed(self, fake_gateway):
        fake_gateway.script_many(error=PushGatewayError("FCM multicast request failed"))
        batch = DeliveryBatchFactory(
            recipient_ids=ids(with_push_token(UserFactory(), "tok-a"))
        )

        outcome = BatchDispatcher(fake_gateway).dispatch(batch.id)

        batch.refresh_from_db()
        assert outcome.status == "failed"
        assert batch.status == BatchStatus.FAILED
        assert batch.success_count == 0
        assert batch.failure_count == 0
        assert batch.errors == []
        assert batch.processed_at is not None

    def test_transport_error_is_logged_with_its_details(self, fake_gateway, mocker):
        logger = mocker.patch("notifications.dispatchers.logger")
        fake_gateway.script_many(
            error=PushGatewayError("FCM multicast request failed", details={"service": "fcm"})
        )
        batch = DeliveryBatchFactory(
            recipient_ids=ids(with_push_token(UserFactory(), "tok-a"))
        )

        BatchDispatcher(fake_gateway).dispatch(batch.id)

        extra = logger.error.call_args.kwargs["extra"]
        assert extra["batch_id"] == str(batch.id)
        assert extra["error_code"] == "PUSH_TRANSPORT_ERROR"
        assert extra["details"] == {"service": "fcm"}

    def test_result_count_mismatch_marks_batch_failed(self, fake_gateway):
        fake_gateway.script_many(results=[PushResult.sent("m-1")])
        batch = DeliveryBatchFactory(
            recipient_ids=ids(
                with_push_token(UserFactory(), "tok-a"),
                with_push_token(UserFactory(), "tok-b"),
            )
        )

        BatchDispatcher(fake_gateway).dispatch(batch.id)

        batch.refresh_from_db()
        assert batch.status == BatchStatus.FAILED

    def test_token_lookup_error_marks_batch_failed(self, fake_gateway, mocker):
        mocker.patch.object(
            PushTokenService, "get_tokens", side_effect=RuntimeError("read timeout")
        )
        batch = DeliveryBatchFactory(recipient_ids=["1"])

        BatchDispatcher(fake_gateway).dispatch(batch.id)

        batch.refresh_from_db()
        assert batch.status == BatchStatus.FAILED
        assert fake_gateway.call_count == 0


@pytest.mark.django_db
class TestBatchDispatchIdempotency:
    @pytest.mark.parametrize(
        "status",
        [BatchStatus.PROCESSING, BatchStatus.COMPLETED, BatchStatus.FAILED],
    )
    def test_claimed_batch_makes_no_call(self, fake_gateway, status):
        batch = DeliveryBatchFactory(
            recipient_ids=ids(with_push_token(UserFactory(), "tok-a")),
            status=status,
        )

        outcome = BatchDispatcher(fake_gateway).dispatch(batch.id)

        batch.refresh_from_db()
        assert outcome.status == SKIPPED
        assert fake_gateway.call_count == 0
        assert batch.status == status

    def test_second_dispatch_makes_no_call(self, fake_gateway, remove_now):
        batch = DeliveryBatchFactory(
            recipient_ids=ids(with_push_token(UserFactory(), "tok-a"))
        )
        dispatcher = BatchDispatcher(fake_gateway, schedule_token_removal=remove_now)

        dispatcher.dispatch(batch.id)
        second = dispatcher.dispatch(batch.id)

        assert second.status == SKIPPED
        assert len(fake_gateway.many_calls) == 1
        assert DeliveryBatch.objects.get(pk=batch.pk).success_count == 1

    def test_missing_batch(self, fake_gateway, db):
        outcome = BatchDispatcher(fake_gateway).dispatch(uuid.uuid4())

        assert outcome.status == NOT_FOUND
        assert fake_gateway.call_count == 0


class TestDedupeRecipients:
    def test_keeps_first_occurrence_order(self):
        assert dedupe_recipients([3, "1", 3, 2, "1"]) == ["3", "1", "2"]

    def test_empty(self):
        assert dedupe_recipients([]) == []
        assert dedupe_recipients(None) == []

    def test_compares_canonical_ids(self):
        assert dedupe_recipients(["5", "05", " 5", 5, "7"]) == ["5", "7"]

    def test_unmatchable_ids_are_kept_once(self):
        assert dedupe_recipients(["not-a-user", " not-a-user", None]) == ["not-a-user"]
