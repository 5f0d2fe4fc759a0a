"""
Waitlist engine entry point.

`WaitlistService` is what routes and jobs talk to. It picks the strategy
for the event kind, runs the operation, and drops the cached status of
every event it changed. The engine holds no state between calls; all of
it lives in the database.

Capacity is the caller's business: check `is_event_full` before `enroll`,
and call `promote` whenever a confirmed spot frees up.
"""

from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from waitlist_api.core.logging import get_logger
from waitlist_api.db.base import utcnow
from waitlist_api.schemas.waitlist import (
    EnrollmentResult,
    EventCapacity,
    EventType,
    PromotionResult,
    WaitlistActionResult,
    WaitlistEntry,
    WaitlistPosition,
)
from waitlist_api.services.cache_service import invalidate_waitlist_status
from waitlist_api.services.interfaces.waitlist import WaitlistStrategy
from waitlist_api.services.notification_service import DatabaseNotificationSender, NotificationSender
from waitlist_api.services.strategy_factory import get_waitlist_strategy
from waitlist_api.services.tournament_waitlist import TournamentWaitlist

logger = get_logger(__name__)


class WaitlistService:
    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[NotificationSender] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.notifier = notifier or DatabaseNotificationSender(db)
        self.clock = clock

    def _strategy(self, event_type: EventType | str) -> WaitlistStrategy:
        return get_waitlist_strategy(event_type, self.db, self.notifier, self.clock)

    async def enroll(
        self,
        user_id: int,
        event_type: EventType | str,
        event_id: int,
        sub_id: Optional[int] = None,
    ) -> EnrollmentResult:
        result = await self._strategy(event_type).enroll(user_id, event_id, sub_id)
        await invalidate_waitlist_status(EventType(event_type).value, event_id)
        return result

    async def get_position(
        self, user_id: int, event_type: EventType | str, event_id: int
    ) -> Optional[WaitlistPosition]:
        return await self._strategy(event_type).get_position(user_id, event_id)

    async def promote(self, event_type: EventType | str, event_id: int) -> Optional[PromotionResult]:
        result = await self._strategy(event_type).promote(event_id)
        if result is not None:
            await invalidate_waitlist_status(EventType(event_type).value, event_id)
        return result

    async def accept(self, user_id: int, event_type: EventType | str, event_id: int) -> WaitlistActionResult:
        result = await self._strategy(event_type).accept(user_id, event_id)
        await invalidate_waitlist_status(EventType(event_type).value, event_id)
        return result

    async def decline(self, user_id: int, event_type: EventType | str, event_id: int) -> WaitlistActionResult:
        result = await self._strategy(event_type).decline(user_id, event_id)
        await invalidate_waitlist_status(EventType(event_type).value, event_id)
        return result

    async def leave(self, user_id: int, event_type: EventType | str, event_id: int) -> WaitlistActionResult:
        result = await self._strategy(event_type).leave(user_id, event_id)
        if result.success:
            await invalidate_waitlist_status(EventType(event_type).value, event_id)
        return result

    async def reorder(self, event_type: EventType | str, event_id: int) -> None:
        await self._strategy(event_type).reorder(event_id)

    async def sweep_expired_offers(self) -> int:
        """
        Expire every tournament offer past its deadline and cascade each
        freed spot to the next person in line. Safe to run repeatedly.
        """
        tournaments = TournamentWaitlist(self.db, self.notifier, self.clock)
        expired_in = await tournaments.expire_overdue_offers()

        for tournament_id in set(expired_in):
            await invalidate_waitlist_status(EventType.TOURNAMENT.value, tournament_id)

        logger.info("waitlist_sweep_completed", expired=len(expired_in), tournaments=len(set(expired_in)))
        return len(expired_in)

    async def list_entries(self, event_type: EventType | str, event_id: int) -> list[WaitlistEntry]:
        return await self._strategy(event_type).list_entries(event_id)

    async def is_event_full(self, event_type: EventType | str, event_id: int) -> EventCapacity:
        return await self._strategy(event_type).capacity(event_id)
