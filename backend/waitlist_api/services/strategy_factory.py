"""
Waitlist strategy factory.
Picks the waitlist implementation for an event kind.
"""

from datetime import datetime
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from waitlist_api.db.base import utcnow
from waitlist_api.schemas.waitlist import EventType
from waitlist_api.services.interfaces.waitlist import WaitlistStrategy
from waitlist_api.services.league_waitlist import LeagueWaitlist
from waitlist_api.services.notification_service import NotificationSender
from waitlist_api.services.tournament_waitlist import TournamentWaitlist

_STRATEGIES: dict[EventType, type[WaitlistStrategy]] = {
    EventType.TOURNAMENT: TournamentWaitlist,
    EventType.LEAGUE: LeagueWaitlist,
}


def get_waitlist_strategy(
    event_type: EventType | str,
    db: AsyncSession,
    notifier: NotificationSender,
    clock: Callable[[], datetime] = utcnow,
) -> WaitlistStrategy:
    """
    Raises ValueError for an unknown event type.
    """
    return _STRATEGIES[EventType(event_type)](db, notifier, clock)
