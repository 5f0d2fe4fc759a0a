"""
Tests for the expired-offer sweep across tournaments.
"""

import pytest
from sqlalchemy import select

from waitlist_api.models.tournament import TournamentRegistration
from waitlist_api.schemas.waitlist import EventType

T = EventType.TOURNAMENT


async def _statuses(db, tournament_id: int) -> dict[int, str]:
    result = await db.execute(
        select(TournamentRegistration.id, TournamentRegistration.status)
        .where(TournamentRegistration.tournament_id == tournament_id)
        .execution_options(populate_existing=True)
    )
    return dict(result.all())


@pytest.mark.asyncio
async def test_sweep_expires_offers_across_tournaments(
    service, db_session, notifier, users, tournament_id, second_tournament_id, clock
):
    """Three overdue offers in two tournaments: all expire, each tournament cascades."""
    a1 = await service.enroll(users[0], T, tournament_id)
    a2 = await service.enroll(users[1], T, tournament_id)
    a3 = await service.enroll(users[2], T, tournament_id)
    b1 = await service.enroll(users[3], T, second_tournament_id)
    b2 = await service.enroll(users[4], T, second_tournament_id)

    await service.promote(T, tournament_id)
    await service.promote(T, tournament_id)
    await service.promote(T, second_tournament_id)
    clock.advance(hours=25)

    expired = await service.sweep_expired_offers()

    assert expired == 3

    first = await _statuses(db_session, tournament_id)
    assert first[a1.entry_id] == "withdrawn"
    assert first[a2.entry_id] == "withdrawn"
    assert first[a3.entry_id] == "spot_offered"

    second = await _statuses(db_session, second_tournament_id)
    assert second[b1.entry_id] == "withdrawn"
    assert second[b2.entry_id] == "spot_offered"

    assert "Spot offer expired" in notifier.titles_for(users[0])
    assert "Spot offer expired" in notifier.titles_for(users[3])
    assert notifier.titles_for(users[4])[-1] == "A spot opened up!"

    result = await db_session.execute(
        select(TournamentRegistration.notes).where(TournamentRegistration.id == a1.entry_id)
    )
    assert result.scalar_one() == "Spot offer expired automatically"


@pytest.mark.asyncio
async def test_sweep_is_idempotent(service, users, tournament_id, clock):
    await service.enroll(users[0], T, tournament_id)
    await service.promote(T, tournament_id)
    clock.advance(hours=25)

    assert await service.sweep_expired_offers() == 1
    assert await service.sweep_expired_offers() == 0


@pytest.mark.asyncio
async def test_sweep_ignores_live_offers(service, db_session, users, tournament_id, clock):
    enrolled = await service.enroll(users[0], T, tournament_id)
    await service.promote(T, tournament_id)
    clock.advance(hours=23)

    assert await service.sweep_expired_offers() == 0
    statuses = await _statuses(db_session, tournament_id)
    assert statuses[enrolled.entry_id] == "spot_offered"


@pytest.mark.asyncio
async def test_sweep_with_nothing_offered(service):
    assert await service.sweep_expired_offers() == 0
