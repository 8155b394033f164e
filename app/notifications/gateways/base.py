"""
Push gateway protocol and shared types.

A gateway wraps one push service (FCM in production) behind two calls:

    send_one(token, message) -> PushResult
    send_many(tokens, message) -> list[PushResult]

send_many returns exactly one result per input token, in input order.
Per-recipient rejections are results, not exceptions; an exception means
the call itself failed (transport, authentication) and nothing can be said
about individual recipients.

Gateways are constructed per unit of work and closed afterwards:

    with get_gateway() as gateway:
        result = gateway.send_one(token, message)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from core.exceptions import ExternalServiceError

# =============================================================================
# Error Codes
# =============================================================================

# The token will never work again: the app was uninstalled or the token rotated
UNREGISTERED = "unregistered"
INVALID_TOKEN = "invalid_token"

# Transient or other failures: recorded, never trigger token removal
RATE_LIMITED = "rate_limited"
UNAVAILABLE = "unavailable"
INTERNAL = "internal"
INVALID_ARGUMENT = "invalid_argument"
SENDER_ID_MISMATCH = "sender_id_mismatch"
AUTH_ERROR = "auth_error"
UNKNOWN = "unknown"

PERMANENT_ENDPOINT_ERRORS = frozenset({UNREGISTERED, INVALID_TOKEN})


def is_permanent_endpoint_error(error_code: str | None) -> bool:
    """Whether the code means the push token should be removed."""
    return error_code in PERMANENT_ENDPOINT_ERRORS


class PushGatewayError(ExternalServiceError):
    """The push service call failed as a whole."""

    default_error_code: str = "PUSH_TRANSPORT_ERROR"


# =============================================================================
# Message and Result
# =============================================================================


@dataclass(frozen=True)
class PushMessage:
    """
    Routed push payload, independent of the push service.

    Attributes:
        title/body: Visible notification text
        data: Deep-link data; every value is a string
        channel_id: Android notification channel
        priority: Transport priority, "high" or "normal"
        image_url: Optional large image
        tag: Collapses notifications about the same entity
    """

    title: str
    body: str
    channel_id: str
    priority: str
    data: dict[str, str] = field(default_factory=dict)
    image_url: str | None = None
    tag: str | None = None


@dataclass(frozen=True)
class PushResult:
    """Outcome of one delivery attempt to one token."""

    success: bool
    message_id: str | None = None
    error_code: str | None = None
    error_message: str = ""

    @classmethod
    def sent(cls, message_id: str) -> PushResult:
        return cls(success=True, message_id=message_id)

    @classmethod
    def failed(cls, error_code: str, error_message: str = "") -> PushResult:
        return cls(success=False, error_code=error_code, error_message=error_message)

    @property
    def is_permanent_endpoint_error(self) -> bool:
        return not self.success and is_permanent_endpoint_error(self.error_code)


# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class PushGateway(Protocol):
    """
    Protocol for push service implementations.

    Required Methods:
        send_one: Deliver to one token
        send_many: Deliver one message to many tokens (ordered results)
        close: Release the client and its credentials
    """

    def send_one(self, token: str, message: PushMessage) -> PushResult: ...

    def send_many(self, tokens: list[str], message: PushMessage) -> list[PushResult]: ...

    def close(self) -> None: ...


class BaseGateway:
    """
    Shared behaviour for gateway implementations.

    Subclasses implement send_one and usually override send_many with a
    native multicast call; the default sends one at a time.
    """

    name = "base"

    def send_one(self, token: str, message: PushMessage) -> PushResult:
        raise NotImplementedError

    def send_many(self, tokens: list[str], message: PushMessage) -> list[PushResult]:
        return [self.send_one(token, message) for token in tokens]

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
