"""
Console push gateway for local development.

Logs every message instead of sending it and reports success with a
synthetic message id.
"""

from __future__ import annotations

import logging
import uuid

from notifications.gateways.base import BaseGateway, PushMessage, PushResult

logger = logging.getLogger(__name__)


class ConsoleGateway(BaseGateway):
    name = "console"

    def send_one(self, token: str, message: PushMessage) -> PushResult:
        message_id = f"console-{uuid.uuid4().hex}"
        logger.info(
            f"[push:{message.channel_id}/{message.priority}] "
            f"{message.title!r} -> {token[:12]}... ({message_id})",
            extra={"data": message.data},
        )
        return PushResult.sent(message_id)
