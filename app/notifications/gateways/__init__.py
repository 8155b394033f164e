"""
Push gateway implementations.

This package contains:
- base.py: PushGateway protocol, PushMessage/PushResult, error codes
- fcm.py: Firebase Cloud Messaging implementation
- console.py: Logging implementation for local development

Gateway Selection:
    Gateways are selected by name (e.g. "fcm", "console"). The default is
    settings.PUSH_GATEWAY. get_gateway() returns a new instance on every
    call; callers own it and close it.

Usage:
    from notifications.gateways import get_gateway

    with get_gateway() as gateway:
        result = gateway.send_one(token, message)

Adding New Gateways:
    1. Create new file (e.g. apns.py)
    2. Implement the PushGateway protocol (or subclass BaseGateway)
    3. Register in GATEWAYS dict below
"""

from __future__ import annotations

import logging

from django.conf import settings

from notifications.gateways.base import (
    PERMANENT_ENDPOINT_ERRORS,
    BaseGateway,
    PushGateway,
    PushGatewayError,
    PushMessage,
    PushResult,
    is_permanent_endpoint_error,
)
from notifications.gateways.console import ConsoleGateway
from notifications.gateways.fcm import FCMGateway

logger = logging.getLogger(__name__)

# Maps gateway name to gateway class
GATEWAYS: dict[str, type[BaseGateway]] = {
    "fcm": FCMGateway,
    "console": ConsoleGateway,
}


def get_gateway(name: str | None = None, **kwargs) -> PushGateway:
    """
    Build a new gateway instance.

    Args:
        name: Gateway name (defaults to settings.PUSH_GATEWAY)
        **kwargs: Gateway configuration options

    Raises:
        ValueError: If the gateway name is unknown
    """
    name = name or settings.PUSH_GATEWAY
    gateway_class = GATEWAYS.get(name)
    if gateway_class is None:
        raise ValueError(f"Unknown push gateway: {name}")
    logger.debug(f"Building push gateway {name}")
    return gateway_class(**kwargs)


def list_gateways() -> list[str]:
    return list(GATEWAYS.keys())


__all__ = [
    "GATEWAYS",
    "PERMANENT_ENDPOINT_ERRORS",
    "BaseGateway",
    "PushGateway",
    "PushGatewayError",
    "PushMessage",
    "PushResult",
    "get_gateway",
    "is_permanent_endpoint_error",
    "list_gateways",
]
