"""
League waitlist: negative ranks, promotion grants the spot outright.

A league participant's `rank` doubles as its waitlist slot: -1 is first in
line, -2 second, and so on. Promotion moves the least-negative rank to
max(positive rank) + 1 with no offer window, because ladder play has no
payment or accept step to wait on.

Ranks are never renumbered after a departure. Promotion searches for the
least-negative remaining rank instead of assuming -1 exists, so gaps at
the front of the line are harmless.
"""

from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist_api.core.errors import ConflictError, NotFoundError
from waitlist_api.core.logging import get_logger
from waitlist_api.core.metrics import record_enrollment, record_promotion, waitlist_enrollment_retries
from waitlist_api.db.base import as_utc, utcnow
from waitlist_api.models.league import League, LeagueParticipant, LeagueParticipantPlayer, LeagueSeason
from waitlist_api.models.user import User
from waitlist_api.schemas.waitlist import (
    EnrollmentResult,
    EventCapacity,
    EventType,
    PromotionResult,
    WaitlistActionResult,
    WaitlistEntry,
    WaitlistPosition,
    WaitlistUser,
)
from waitlist_api.services.interfaces.waitlist import WaitlistStrategy
from waitlist_api.services.notification_service import NotificationSender, send_notification

logger = get_logger(__name__)

WAIT_DAYS_PER_POSITION = 7
MAX_RETRY_ATTEMPTS = 3
NOTIFICATION_TYPE = "league_update"


class LeagueWaitlist(WaitlistStrategy):
    event_type = EventType.LEAGUE

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationSender,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.notifier = notifier
        self.clock = clock

    async def current_season(self, league_id: int) -> Optional[LeagueSeason]:
        """The league's most recent season, by season number."""
        result = await self.db.execute(
            select(LeagueSeason)
            .where(LeagueSeason.league_id == league_id)
            .order_by(LeagueSeason.season_number.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def _league_name(self, league_id: int) -> Optional[str]:
        result = await self.db.execute(select(League.name).where(League.id == league_id))
        return result.scalar_one_or_none()

    async def _resolve_user(self, participant_id: int) -> Optional[int]:
        result = await self.db.execute(
            select(LeagueParticipantPlayer.user_id)
            .where(LeagueParticipantPlayer.participant_id == participant_id)
            .order_by(LeagueParticipantPlayer.is_captain.desc(), LeagueParticipantPlayer.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _find_waitlisted(self, user_id: int, season_id: int):
        result = await self.db.execute(
            select(LeagueParticipant.id, LeagueParticipant.rank)
            .join(LeagueParticipantPlayer, LeagueParticipant.id == LeagueParticipantPlayer.participant_id)
            .where(
                LeagueParticipant.season_id == season_id,
                LeagueParticipantPlayer.user_id == user_id,
                LeagueParticipant.rank < 0,
            )
            .limit(1)
        )
        return result.first()

    async def next_rank(self, season_id: int) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.min(LeagueParticipant.rank), 0)).where(
                LeagueParticipant.season_id == season_id,
                LeagueParticipant.rank < 0,
            )
        )
        return min(result.scalar_one() - 1, -1)

    async def enroll(self, user_id: int, event_id: int, sub_id: Optional[int] = None) -> EnrollmentResult:
        league_name = await self._league_name(event_id)
        if league_name is None:
            raise NotFoundError("League not found")

        if sub_id is None:
            season = await self.current_season(event_id)
            if season is None:
                raise NotFoundError("No active season found for this league")
            season_id = season.id
        else:
            result = await self.db.execute(
                select(LeagueSeason.id).where(
                    LeagueSeason.id == sub_id,
                    LeagueSeason.league_id == event_id,
                )
            )
            season_id = result.scalar_one_or_none()
            if season_id is None:
                raise NotFoundError("Season not found")

        existing = await self.db.execute(
            select(LeagueParticipant.id)
            .join(LeagueParticipantPlayer, LeagueParticipant.id == LeagueParticipantPlayer.participant_id)
            .where(
                LeagueParticipant.season_id == season_id,
                LeagueParticipantPlayer.user_id == user_id,
                LeagueParticipant.status == "active",
                LeagueParticipant.rank.isnot(None),
            )
            .limit(1)
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("You are already in this league or on its waitlist")

        for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
            rank = await self.next_rank(season_id)
            participant = LeagueParticipant(season_id=season_id, rank=rank, status="active")
            self.db.add(participant)
            try:
                await self.db.flush()
                participant_id = participant.id
                self.db.add(
                    LeagueParticipantPlayer(
                        participant_id=participant_id,
                        user_id=user_id,
                        is_captain=True,
                    )
                )
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                waitlist_enrollment_retries.inc()
                logger.info("waitlist_enroll_retry", league_id=event_id, season_id=season_id, rank=rank, attempt=attempt)
                continue
            break
        else:
            raise ConflictError("Waitlist is busy, please try again.")

        position = abs(rank)
        record_enrollment(self.event_type.value)
        logger.info(
            "waitlist_enrolled",
            event_type=self.event_type.value,
            league_id=event_id,
            season_id=season_id,
            participant_id=participant_id,
            user_id=user_id,
            position=position,
        )

        await send_notification(
            self.notifier,
            user_id=user_id,
            type=NOTIFICATION_TYPE,
            title="You're on the waitlist!",
            message=(
                f"You are #{position} on the waitlist for {league_name}. "
                "We'll notify you when a spot opens."
            ),
            data={"leagueId": event_id, "waitlistPosition": position},
        )

        return EnrollmentResult(entry_id=participant_id, position=position)

    async def get_position(self, user_id: int, event_id: int) -> Optional[WaitlistPosition]:
        season = await self.current_season(event_id)
        if season is None:
            return None

        participation = await self._find_waitlisted(user_id, season.id)
        if participation is None:
            return None

        total = await self.db.execute(
            select(func.count()).select_from(LeagueParticipant).where(
                LeagueParticipant.season_id == season.id,
                LeagueParticipant.rank < 0,
            )
        )

        position = abs(participation.rank)
        return WaitlistPosition(
            position=position,
            total_waitlisted=total.scalar_one(),
            estimated_wait_days=position * WAIT_DAYS_PER_POSITION,
            status="waitlisted",
        )

    async def promote(self, event_id: int) -> Optional[PromotionResult]:
        season = await self.current_season(event_id)
        if season is None:
            return None
        season_id = season.id

        # Closest to zero is first in line
        result = await self.db.execute(
            select(LeagueParticipant.id, LeagueParticipant.rank)
            .where(
                LeagueParticipant.season_id == season_id,
                LeagueParticipant.rank < 0,
            )
            .order_by(LeagueParticipant.rank.desc())
            .limit(1)
        )
        next_in_line = result.first()
        if next_in_line is None:
            return None
        participant_id, waitlist_rank = next_in_line

        user_id = await self._resolve_user(participant_id)
        if user_id is None:
            logger.error("waitlist_entry_without_player", league_id=event_id, participant_id=participant_id)
            return None

        max_rank = await self.db.execute(
            select(func.coalesce(func.max(LeagueParticipant.rank), 0)).where(
                LeagueParticipant.season_id == season_id,
                LeagueParticipant.rank > 0,
            )
        )
        new_rank = max_rank.scalar_one() + 1

        updated = await self.db.execute(
            update(LeagueParticipant)
            .where(
                LeagueParticipant.id == participant_id,
                LeagueParticipant.rank == waitlist_rank,
            )
            .values(rank=new_rank)
        )
        if updated.rowcount == 0:
            logger.info("waitlist_promote_skipped", league_id=event_id, participant_id=participant_id)
            return None
        await self.db.commit()

        record_promotion(self.event_type.value)
        logger.info(
            "waitlist_promoted",
            league_id=event_id,
            season_id=season_id,
            participant_id=participant_id,
            user_id=user_id,
            rank=new_rank,
        )

        league_name = await self._league_name(event_id)
        if league_name:
            await send_notification(
                self.notifier,
                user_id=user_id,
                type=NOTIFICATION_TYPE,
                title="You're in!",
                message=(
                    f"A spot has opened up in {league_name} and you've been "
                    "automatically added to the league!"
                ),
                data={"leagueId": event_id, "participantId": participant_id},
            )

        return PromotionResult(user_id=user_id, entry_id=participant_id)

    async def accept(self, user_id: int, event_id: int) -> WaitlistActionResult:
        return WaitlistActionResult(success=False, message="Accept spot is only available for tournaments")

    async def decline(self, user_id: int, event_id: int) -> WaitlistActionResult:
        return WaitlistActionResult(success=False, message="Decline spot is only available for tournaments")

    async def leave(self, user_id: int, event_id: int) -> WaitlistActionResult:
        season = await self.current_season(event_id)
        participation = await self._find_waitlisted(user_id, season.id) if season else None
        if participation is None:
            return WaitlistActionResult(success=False, message="You are not on the waitlist for this event")

        updated = await self.db.execute(
            update(LeagueParticipant)
            .where(
                LeagueParticipant.id == participation.id,
                LeagueParticipant.rank == participation.rank,
            )
            .values(status="withdrawn", rank=None)
        )
        await self.db.commit()
        if updated.rowcount == 0:
            # Promoted or withdrawn since the lookup
            logger.info("waitlist_leave_skipped", league_id=event_id, participant_id=participation.id)
            return WaitlistActionResult(success=False, message="You are not on the waitlist for this event")

        logger.info("waitlist_left", league_id=event_id, participant_id=participation.id, user_id=user_id)
        return WaitlistActionResult(success=True, message="You have left the waitlist")

    async def reorder(self, event_id: int) -> None:
        # Negative ranks are already a total order
        logger.debug("waitlist_reorder_skipped", league_id=event_id)

    async def list_entries(self, event_id: int) -> list[WaitlistEntry]:
        season = await self.current_season(event_id)
        if season is None:
            return []

        result = await self.db.execute(
            select(
                LeagueParticipant.id,
                LeagueParticipant.rank,
                LeagueParticipant.created_at,
                User.id.label("user_id"),
                User.display_name,
                User.email,
            )
            .join(LeagueParticipantPlayer, LeagueParticipant.id == LeagueParticipantPlayer.participant_id)
            .join(User, LeagueParticipantPlayer.user_id == User.id)
            .where(
                LeagueParticipant.season_id == season.id,
                LeagueParticipant.rank < 0,
                LeagueParticipantPlayer.is_captain.is_(True),
            )
            .order_by(LeagueParticipant.rank.desc())
        )

        return [
            WaitlistEntry(
                id=row.id,
                position=abs(row.rank),
                status="waitlisted",
                user=WaitlistUser(id=row.user_id, display_name=row.display_name, email=row.email),
                registered_at=as_utc(row.created_at),
            )
            for row in result.all()
        ]

    async def capacity(self, event_id: int) -> EventCapacity:
        season = await self.current_season(event_id)
        if season is None:
            raise NotFoundError("No active season found")

        # Only confirmed participants count, not the waitlist
        result = await self.db.execute(
            select(func.count()).select_from(LeagueParticipant).where(
                LeagueParticipant.season_id == season.id,
                LeagueParticipant.rank > 0,
            )
        )
        current = result.scalar_one()
        maximum = season.max_participants
        return EventCapacity(
            is_full=bool(maximum) and current >= maximum,
            current_count=current,
            max_count=maximum,
        )
