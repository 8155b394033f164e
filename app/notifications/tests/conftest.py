"""
Test configuration and fixtures for notification tests.

This module provides:
- FakeGateway: records every call and returns scripted results
- User fixtures with and without push tokens
- A fixture that stubs the Celery dispatch tasks queued by signals

Usage:
    def test_example(fake_gateway, user_with_token):
        fake_gateway.script_one(PushResult.sent("msg-1"))
        outcome = NotificationDispatcher(fake_gateway).dispatch(notification.id)
"""

import pytest

from notifications.gateways.base import BaseGateway, PushResult
from users.tests.factories import UserFactory, with_push_token


class FakeGateway(BaseGateway):
    """
    In-memory gateway for dispatcher tests.

    send_one returns the scripted single result (default: sent).
    send_many returns results from a per-token map (default: sent) unless a
    full result list or an exception is scripted.
    """

    name = "fake"

    def __init__(self):
        self.one_calls = []
        self.many_calls = []
        self.closed = False
        self._one_result = None
        self._one_error = None
        self._many_results = None
        self._many_error = None
        self._per_token = {}

    # Scripting

    def script_one(self, result=None, error=None):
        self._one_result = result
        self._one_error = error

    def script_token(self, token, result):
        self._per_token[token] = result

    def script_many(self, results=None, error=None):
        self._many_results = results
        self._many_error = error

    # Gateway API

    def send_one(self, token, message):
        self.one_calls.append((token, message))
        if self._one_error is not None:
            raise self._one_error
        return self._one_result or PushResult.sent(f"fake-{len(self.one_calls)}")

    def send_many(self, tokens, message):
        self.many_calls.append((list(tokens), message))
        if self._many_error is not None:
            raise self._many_error
        if self._many_results is not None:
            return list(self._many_results)
        return [
            self._per_token.get(token) or PushResult.sent(f"fake-{token}")
            for token in tokens
        ]

    def close(self):
        self.closed = True

    @property
    def call_count(self):
        return len(self.one_calls) + len(self.many_calls)


@pytest.fixture
def fake_gateway():
    """Gateway double that records calls."""
    return FakeGateway()


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """User without a push token."""
    return UserFactory()


@pytest.fixture
def user_with_token(db):
    """User with push token "tok-A"."""
    return with_push_token(UserFactory(), "tok-A")


# =============================================================================
# Task Fixtures
# =============================================================================


@pytest.fixture
def mock_dispatch_tasks(mocker):
    """
    Stub the dispatch tasks queued by post_save signals.

    Returns a namespace with notification and batch mocks.
    """
    notification_delay = mocker.patch("notifications.tasks.dispatch_notification.delay")
    batch_delay = mocker.patch("notifications.tasks.dispatch_batch.delay")

    class Mocks:
        notification = notification_delay
        batch = batch_delay

    return Mocks
