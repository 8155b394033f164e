"""
Firebase Cloud Messaging gateway.

Wraps the firebase-admin SDK. Each gateway instance initializes its own
named Firebase app from the configured credentials and deletes it on
close(), so no SDK state outlives the unit of work that created it.

Error Mapping:
    SDK exceptions are normalized to the codes in gateways.base:

    UnregisteredError                      -> unregistered
    InvalidArgumentError (token rejected)  -> invalid_token
    InvalidArgumentError (other)           -> invalid_argument
    SenderIdMismatchError                  -> sender_id_mismatch
    QuotaExceededError                     -> rate_limited
    UnauthenticatedError                   -> auth_error
    UnavailableError                       -> unavailable
    InternalError                          -> internal
    other FirebaseError                    -> its code, lowercased

Usage:
    with FCMGateway(credentials_file="/secrets/fcm.json") as gateway:
        results = gateway.send_many(tokens, message)
"""

from __future__ import annotations

import logging
import uuid

import firebase_admin
from django.conf import settings
from firebase_admin import credentials, exceptions, messaging

from notifications.gateways.base import (
    AUTH_ERROR,
    INTERNAL,
    INVALID_ARGUMENT,
    INVALID_TOKEN,
    RATE_LIMITED,
    SENDER_ID_MISMATCH,
    UNAVAILABLE,
    UNKNOWN,
    UNREGISTERED,
    BaseGateway,
    PushGatewayError,
    PushMessage,
    PushResult,
)

logger = logging.getLogger(__name__)

# FCM rejects multicast requests with more tokens than this
MAX_MULTICAST_TOKENS = 500

# Checked in order; subclasses come before their parents
_ERROR_CODES: list[tuple[type[Exception], str]] = [
    (messaging.UnregisteredError, UNREGISTERED),
    (messaging.SenderIdMismatchError, SENDER_ID_MISMATCH),
    (messaging.QuotaExceededError, RATE_LIMITED),
    (exceptions.UnauthenticatedError, AUTH_ERROR),
    (exceptions.UnavailableError, UNAVAILABLE),
    (exceptions.InternalError, INTERNAL),
]


def map_error(exc: BaseException) -> tuple[str, str]:
    """
    Normalize an SDK exception to (error_code, error_message).

    Invalid registration tokens surface as InvalidArgumentError whose
    message names the registration token.
    """
    message = str(exc)

    if isinstance(exc, exceptions.InvalidArgumentError):
        if "registration token" in message.lower():
            return INVALID_TOKEN, message
        return INVALID_ARGUMENT, message

    for exc_class, code in _ERROR_CODES:
        if isinstance(exc, exc_class):
            return code, message

    if isinstance(exc, exceptions.FirebaseError) and exc.code:
        return str(exc.code).lower(), message

    return UNKNOWN, message


class FCMGateway(BaseGateway):
    """
    Push gateway backed by Firebase Cloud Messaging.

    Args:
        credentials_file: Service account JSON path; empty uses
            Application Default Credentials
        project_id: Firebase project id (optional with a service account)
        color: Android notification accent color
        click_action: Android intent action opened on tap
        chunk_size: Tokens per multicast request (capped at 500)
    """

    name = "fcm"

    def __init__(
        self,
        credentials_file: str | None = None,
        project_id: str | None = None,
        color: str | None = None,
        click_action: str | None = None,
        chunk_size: int | None = None,
    ):
        self.credentials_file = (
            credentials_file
            if credentials_file is not None
            else settings.FCM_CREDENTIALS_FILE
        )
        self.project_id = project_id if project_id is not None else settings.FCM_PROJECT_ID
        self.color = color or settings.PUSH_NOTIFICATION_COLOR
        self.click_action = click_action or settings.PUSH_CLICK_ACTION
        self.chunk_size = min(
            chunk_size or settings.FCM_MULTICAST_CHUNK_SIZE,
            MAX_MULTICAST_TOKENS,
        )
        self._app = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _get_app(self):
        if self._app is None:
            if self.credentials_file:
                credential = credentials.Certificate(self.credentials_file)
            else:
                credential = credentials.ApplicationDefault()
            options = {"projectId": self.project_id} if self.project_id else None
            self._app = firebase_admin.initialize_app(
                credential,
                options=options,
                name=f"push-gateway-{uuid.uuid4().hex[:12]}",
            )
        return self._app

    def close(self) -> None:
        if self._app is not None:
            firebase_admin.delete_app(self._app)
            self._app = None

    # -------------------------------------------------------------------------
    # Message building
    # -------------------------------------------------------------------------

    def _notification(self, message: PushMessage) -> messaging.Notification:
        return messaging.Notification(
            title=message.title,
            body=message.body,
            image=message.image_url,
        )

    def _android(self, message: PushMessage) -> messaging.AndroidConfig:
        return messaging.AndroidConfig(
            priority=message.priority,
            notification=messaging.AndroidNotification(
                channel_id=message.channel_id,
                sound="default",
                color=self.color,
                click_action=self.click_action,
                tag=message.tag,
            ),
        )

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def _message(self, token: str, message: PushMessage) -> messaging.Message:
        return messaging.Message(
            token=token,
            notification=self._notification(message),
            data=message.data,
            android=self._android(message),
        )

    def send_one(self, token: str, message: PushMessage) -> PushResult:
        try:
            message_id = messaging.send(
                self._message(token, message),
                app=self._get_app(),
            )
        except (exceptions.FirebaseError, ValueError) as e:
            code, error_message = map_error(e)
            logger.warning(
                f"FCM send failed: {code} - {error_message}",
                extra={"error_code": code},
            )
            return PushResult.failed(code, error_message)

        return PushResult.sent(message_id)

    def send_many(self, tokens: list[str], message: PushMessage) -> list[PushResult]:
        """
        Multicast one message to many tokens.

        Each chunk of at most 500 tokens goes out as one send_each request
        with one Message per token; responses are concatenated in token order.

        Raises:
            PushGatewayError: If a multicast request fails as a whole
        """
        results: list[PushResult] = []
        app = self._get_app()

        for start in range(0, len(tokens), self.chunk_size):
            chunk = tokens[start : start + self.chunk_size]
            try:
                response = messaging.send_each(
                    [self._message(token, message) for token in chunk],
                    app=app,
                )
            except (exceptions.FirebaseError, ValueError) as e:
                raise PushGatewayError(
                    "FCM multicast request failed",
                    details={
                        "service": "fcm",
                        "chunk_start": start,
                        "chunk_size": len(chunk),
                        "original_error": str(e),
                    },
                ) from e

            if len(response.responses) != len(chunk):
                raise PushGatewayError(
                    "FCM returned a response count that does not match the tokens sent",
                    details={"expected": len(chunk), "received": len(response.responses)},
                )

            for send_response in response.responses:
                if send_response.success:
                    results.append(PushResult.sent(send_response.message_id))
                else:
                    code, error_message = map_error(send_response.exception)
                    results.append(PushResult.failed(code, error_message))

            logger.info(
                f"FCM multicast chunk: {response.success_count} sent, "
                f"{response.failure_count} failed",
                extra={
                    "success_count": response.success_count,
                    "failure_count": response.failure_count,
                },
            )

        return results
