"""
Pytest fixtures for test database, client, clock and notifications.

Runs against in-memory SQLite by default; point TEST_DATABASE_URL at a
Postgres database to run the same suite there. Tables are created and
dropped per test for isolation.
"""

import os

# Must be set before the application modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["REDIS_ENABLED"] = "false"

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from waitlist_api.main import app
from waitlist_api.db.base import Base
from waitlist_api.db.session import get_db
from waitlist_api.models.league import League, LeagueSeason
from waitlist_api.models.tournament import Tournament, TournamentDivision
from waitlist_api.models.user import User
from waitlist_api.services.notification_service import NotificationSender
from waitlist_api.services.waitlist_service import WaitlistService

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")

if TEST_DATABASE_URL.startswith("sqlite"):
    # One shared connection so every session sees the same in-memory database
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)

TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


class FakeClock:
    """Controllable replacement for `utcnow`."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotificationSender(NotificationSender):
    def __init__(self):
        self.sent: list[dict] = []

    async def notify(self, user_id, type, title, message, data=None) -> None:
        self.sent.append(
            {"user_id": user_id, "type": type, "title": title, "message": message, "data": data}
        )

    def titles_for(self, user_id: int) -> list[str]:
        return [n["title"] for n in self.sent if n["user_id"] == user_id]


class FailingNotificationSender(NotificationSender):
    async def notify(self, user_id, type, title, message, data=None) -> None:
        raise RuntimeError("notification backend down")


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier() -> RecordingNotificationSender:
    return RecordingNotificationSender()


@pytest.fixture
def failing_notifier() -> FailingNotificationSender:
    return FailingNotificationSender()


@pytest.fixture
def service(db_session: AsyncSession, notifier, clock) -> WaitlistService:
    return WaitlistService(db_session, notifier=notifier, clock=clock)


@pytest_asyncio.fixture
async def users(db_session: AsyncSession) -> list[int]:
    """Five players plus an organizer; returns ids, organizer last."""
    created = [
        User(email=f"player{i}@example.com", username=f"player{i}", display_name=f"Player {i}")
        for i in range(1, 6)
    ]
    created.append(User(email="organizer@example.com", username="organizer", display_name="Organizer"))
    db_session.add_all(created)
    await db_session.commit()
    return [user.id for user in created]


@pytest.fixture
def organizer_id(users: list[int]) -> int:
    return users[-1]


@pytest_asyncio.fixture
async def tournament_id(db_session: AsyncSession, organizer_id: int) -> int:
    """A full tournament: 16 of 16 spots taken."""
    tournament = Tournament(
        name="Spring Open",
        organizer_id=organizer_id,
        max_participants=16,
        current_participants=16,
    )
    db_session.add(tournament)
    await db_session.commit()
    return tournament.id


@pytest_asyncio.fixture
async def second_tournament_id(db_session: AsyncSession, organizer_id: int) -> int:
    tournament = Tournament(
        name="Summer Slam",
        organizer_id=organizer_id,
        max_participants=8,
        current_participants=8,
    )
    db_session.add(tournament)
    await db_session.commit()
    return tournament.id


@pytest_asyncio.fixture
async def division_id(db_session: AsyncSession, tournament_id: int) -> int:
    division = TournamentDivision(tournament_id=tournament_id, name="Mixed Doubles 3.5")
    db_session.add(division)
    await db_session.commit()
    return division.id


@pytest_asyncio.fixture
async def league_id(db_session: AsyncSession, organizer_id: int) -> int:
    league = League(name="Tuesday Ladder", organizer_id=organizer_id)
    db_session.add(league)
    await db_session.commit()
    return league.id


@pytest_asyncio.fixture
async def season_id(db_session: AsyncSession, league_id: int) -> int:
    """Season 2 of the league; season 1 is older and must be ignored."""
    old = LeagueSeason(league_id=league_id, name="Fall", season_number=1, max_participants=4)
    current = LeagueSeason(league_id=league_id, name="Spring", season_number=2, max_participants=4)
    db_session.add_all([old, current])
    await db_session.commit()
    return current.id
