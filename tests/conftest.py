"""
RadioTrack Backend — Test Configuration (conftest.py)
=======================================================

Shared pytest fixtures for the test suite.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session:   AsyncMock session for service unit tests
    ├── sms_channel / email_channel:  RecordingChannel fakes
    ├── dispatcher:        NotificationDispatcher over the fakes
    ├── test_settings:     Settings pointing at a temporary SQLite file
    ├── test_app:          create_app() with the fakes, tables created
    ├── test_client:       HTTPX AsyncClient over ASGITransport
    └── scenario_patient:  request body for patient P1 / radiograph R1
"""

import os
from typing import List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# No real credentials or databases from the developer's environment
os.environ["NOTIFICATION_TRANSPORT"] = "console"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("TWILIO_ACCOUNT_SID", None)
os.environ.pop("EMAIL_USER", None)

from radiotrack.config import Settings  # noqa: E402
from radiotrack.exceptions import NotificationError  # noqa: E402
from radiotrack.services.notification_service import (  # noqa: E402
    NotificationChannel,
    NotificationDispatcher,
)


class RecordingChannel(NotificationChannel):
    """
    Notification channel that remembers what it was asked to send.

    Set `fail_with` to a message to make every send raise NotificationError,
    or `crash_with` to an exception instance to have send raise it as-is.
    """

    def __init__(self, name: str):
        self.name = name
        self.sent: List[Tuple[str, str, str]] = []
        self.fail_with: Optional[str] = None
        self.crash_with: Optional[Exception] = None

    async def send(self, recipient: str, subject: str, body: str) -> None:
        if self.crash_with is not None:
            raise self.crash_with
        if self.fail_with:
            raise NotificationError(message=self.fail_with, channel=self.name)
        self.sent.append((recipient, subject, body))


@pytest.fixture
def mock_db_session():
    """
    A MagicMock that simulates AsyncSession behavior.

    Usage:
        mock_db_session.execute.return_value = result_returning(patient)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def sms_channel():
    return RecordingChannel("sms")


@pytest.fixture
def email_channel():
    return RecordingChannel("email")


@pytest.fixture
def dispatcher(sms_channel, email_channel):
    return NotificationDispatcher(sms=sms_channel, email=email_channel)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'radiotrack_test.db'}",
        notification_transport="console",
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def test_app(test_settings, dispatcher):
    from radiotrack.main import create_app

    app = create_app(settings=test_settings, dispatcher=dispatcher)
    await app.state.db.create_all()
    yield app
    await app.state.db.dispose()


@pytest_asyncio.fixture
async def test_client(test_app):
    """
    HTTPX AsyncClient talking to the app in-process.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
    """
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def scenario_patient():
    return {
        "idPaciente": "P1",
        "nombre": "Ana",
        "telefono": "+100",
        "preferenciaNotificacion": "sms",
        "radiografias": [
            {"idRadiografia": "R1", "tipo": "torax", "estado": "pendiente"},
        ],
    }
