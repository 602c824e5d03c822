"""Shared fixtures for Job Watch tests."""

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from job_watch.config.models import AppConfig
from job_watch.domain.models import NotificationChannel
from job_watch.notifications.models import NotificationResult
from job_watch.notifications.service import NotificationService
from job_watch.persistence.database import close_database, get_session, init_database
from job_watch.persistence.repositories import WatchRepository

from helpers import FakeAdapterFactory

BASE_TIME = datetime(2025, 11, 4, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_database():
    """Create a temporary in-memory database for testing."""
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture
def app_config():
    return AppConfig()


class StepClock:
    """Deterministic wall clock; each call advances by `step`."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def adapter_factory():
    return FakeAdapterFactory()


@pytest.fixture
def notifier():
    """NotificationService mock whose channels both succeed by default."""
    service = Mock(spec=NotificationService)
    service.send_alert.return_value = NotificationResult(channel=NotificationChannel.WEBHOOK, status="sent")
    service.send_digest.return_value = NotificationResult(channel=NotificationChannel.EMAIL, status="sent")
    return service


@pytest.fixture
def create_watch(temp_database, clock):
    """Factory inserting a watch; later calls get later updated_at values."""

    def _create(
        company="Acme",
        source_type="greenhouse",
        source_id="acme",
        title_keywords=(),
        location_keywords=(),
        active=True,
    ):
        with get_session() as session:
            return WatchRepository(session).create(
                company=company,
                source_type=source_type,
                source_id=source_id,
                title_keywords=title_keywords,
                location_keywords=location_keywords,
                active=active,
                now=clock(),
            )

    return _create


@pytest.fixture(autouse=True)
def restore_root_logger():
    """configure_logging replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
