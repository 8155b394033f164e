"""
Tests for notifications app.

This package contains test modules for:
- test_models.py: Notification and DeliveryBatch model tests
- test_routing.py: Channel routing and payload building
- test_gateways.py: FCM and console gateways, registry
- test_dispatchers.py: Single and batch dispatch
- test_retention.py: Retention sweep
- test_services.py: NotificationService tests
- test_signals.py: Dispatch queued on commit
- test_tasks.py: Celery task wrappers and the end-to-end flow

Usage:
    pytest notifications/tests/
    pytest notifications/tests/test_dispatchers.py
"""
