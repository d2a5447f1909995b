"""Shared test fixtures for the salon supervisor test suite."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from salon_supervisor.core.config import Settings
from salon_supervisor.database import SQLiteCollection
from salon_supervisor.services import (
    EscalationService,
    HelpRequestService,
    KnowledgeBaseService,
    NotificationService,
    ResolutionService,
    TimeoutSweeper,
)

TIMEOUT_MS = 600_000


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingVoice:
    """Voice collaborator that remembers what it was asked to say."""

    def __init__(self) -> None:
        self.deliveries: list[tuple[str, str]] = []

    async def deliver_message(self, session_id: str, text: str) -> None:
        self.deliveries.append((session_id, text))


class FailingVoice(RecordingVoice):
    """Voice collaborator whose every delivery fails after being recorded."""

    async def deliver_message(self, session_id: str, text: str) -> None:
        await super().deliver_message(session_id, text)
        raise ConnectionError("room unavailable")


class RecordingClient:
    """Observer that stores every frame it receives."""

    def __init__(self) -> None:
        self.frames: list[str] = []

    async def send_text(self, data: str) -> None:
        self.frames.append(data)

    @property
    def event_types(self) -> list[str]:
        return [json.loads(f)["type"] for f in self.frames]


class BrokenClient:
    """Observer whose connection has gone away."""

    async def send_text(self, data: str) -> None:
        raise RuntimeError("connection closed")


class StalledClient:
    """Observer whose socket accepts nothing and never errors."""

    async def send_text(self, data: str) -> None:
        await asyncio.sleep(60)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "supervisor.db")


@pytest.fixture
def settings(db_path: str) -> Settings:
    return Settings(
        database_path=db_path,
        help_request_timeout_ms=TIMEOUT_MS,
        sweeper_enabled=False,
        livekit_api_key=None,
        livekit_api_secret=None,
    )


@pytest.fixture
def knowledge_base(db_path: str, clock: FrozenClock) -> KnowledgeBaseService:
    return KnowledgeBaseService(SQLiteCollection(db_path, "knowledge_base"), clock=clock)


@pytest.fixture
def help_requests(db_path: str, clock: FrozenClock) -> HelpRequestService:
    return HelpRequestService(
        SQLiteCollection(db_path, "help_requests"), timeout_ms=TIMEOUT_MS, clock=clock
    )


@pytest.fixture
def voice() -> RecordingVoice:
    return RecordingVoice()


@pytest.fixture
def notifications() -> NotificationService:
    return NotificationService()


@pytest.fixture
def dashboard(notifications: NotificationService) -> RecordingClient:
    client = RecordingClient()
    notifications.connect(client)
    return client


@pytest.fixture
def escalation(knowledge_base, help_requests, voice, notifications) -> EscalationService:
    return EscalationService(knowledge_base, help_requests, voice, notifications)


@pytest.fixture
def resolution(knowledge_base, help_requests, voice, notifications) -> ResolutionService:
    return ResolutionService(knowledge_base, help_requests, voice, notifications)


@pytest.fixture
def sweeper(help_requests, voice, notifications) -> TimeoutSweeper:
    return TimeoutSweeper(help_requests, voice, notifications, interval_ms=30_000)
