"""
Pytest configuration and fixtures for all tests.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest

# Run without real SMTP credentials before any app module reads the environment
for _name in ("SMTP_EMAIL", "SMTP_PASSWORD", "TRUST_PROXY", "RATE_LIMIT_MAX", "RATE_LIMIT_WINDOW_MINUTES"):
    os.environ.pop(_name, None)
os.environ.setdefault('ENVIRONMENT', 'test')
os.environ.setdefault('LOG_LEVEL', 'INFO')
os.environ.setdefault('SMTP_VERIFY_ON_STARTUP', 'false')

from src.shared.contact.exceptions import TransportError  # noqa: E402


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeTransport:
    """Records sends instead of talking to an SMTP server."""

    def __init__(self, error: Exception = None):
        self.error = error
        self.sent = []

    def send(self, notification, destination):
        if self.error is not None:
            raise self.error
        self.sent.append((notification, destination))
        return f"<receipt-{len(self.sent)}@test>"


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 5, 14, 30, tzinfo=timezone.utc))


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def failing_transport():
    return FakeTransport(error=TransportError("SMTPServerDisconnected: Connection unexpectedly closed"))


@pytest.fixture
def valid_fields():
    return {
        "name": "Jo",
        "email": "jo@x.com",
        "subject": "Hi there",
        "message": "1234567890",
    }
