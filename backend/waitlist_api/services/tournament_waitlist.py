"""
Tournament waitlist: explicit positions and time-boxed spot offers.

STATE MACHINE
=============

  waitlisted --promote--> spot_offered --accept--> pending_payment
                                       --decline--> withdrawn
                                       --expire---> withdrawn
  waitlisted --leave--> withdrawn

`waitlist_position` is set only while an entry is `waitlisted`, and the
offer timestamps only while it is `spot_offered`. Every transition is a
conditional UPDATE on the expected current status; a zero row count means
another request already moved the entry and the step is skipped.

CONCURRENCY
===========

Position allocation is read-max-then-insert. Two enrollments racing on
the same tournament can read the same max; the unique constraint on
(tournament_id, waitlist_position) rejects the loser, which rolls back and
re-reads, up to MAX_RETRY_ATTEMPTS.

Each step (transition, reorder, promote) commits on its own. A crash in
the middle of a cascade leaves a withdrawn entry without a successor
offer; the next sweep or promote call picks it up, since promote is a
no-op on an empty waitlist.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist_api.core.errors import ConflictError, NotFoundError
from waitlist_api.core.logging import get_logger
from waitlist_api.core.metrics import (
    record_enrollment,
    record_offer_transition,
    record_promotion,
    waitlist_enrollment_retries,
    waitlist_offers_swept,
)
from waitlist_api.db.base import as_utc, utcnow
from waitlist_api.models.tournament import (
    Tournament,
    TournamentDivision,
    TournamentRegistration,
    TournamentRegistrationPlayer,
)
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

SPOT_OFFER_DURATION = timedelta(hours=24)
WAIT_DAYS_PER_POSITION = 3
MAX_RETRY_ATTEMPTS = 3
NOTIFICATION_TYPE = "tournament_update"

# Statuses that still hold a place in line
QUEUED_STATUSES = ("waitlisted", "spot_offered")
# Statuses that no longer block a user from enrolling again
CLOSED_STATUSES = ("withdrawn", "disqualified")


class TournamentWaitlist(WaitlistStrategy):
    event_type = EventType.TOURNAMENT

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationSender,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.notifier = notifier
        self.clock = clock

    # Lookups

    async def _get_tournament(self, tournament_id: int) -> Optional[Tournament]:
        result = await self.db.execute(
            select(Tournament)
            .where(Tournament.id == tournament_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _tournament_name(self, tournament_id: int) -> Optional[str]:
        result = await self.db.execute(select(Tournament.name).where(Tournament.id == tournament_id))
        return result.scalar_one_or_none()

    async def _resolve_user(self, registration_id: int) -> Optional[int]:
        """The captain is the registration's notifiable user."""
        result = await self.db.execute(
            select(TournamentRegistrationPlayer.user_id)
            .where(TournamentRegistrationPlayer.registration_id == registration_id)
            .order_by(TournamentRegistrationPlayer.is_captain.desc(), TournamentRegistrationPlayer.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _find_user_registration(self, user_id: int, tournament_id: int, statuses: tuple[str, ...]):
        result = await self.db.execute(
            select(
                TournamentRegistration.id,
                TournamentRegistration.status,
                TournamentRegistration.waitlist_position,
                TournamentRegistration.spot_offered_at,
                TournamentRegistration.spot_expires_at,
            )
            .join(
                TournamentRegistrationPlayer,
                TournamentRegistration.id == TournamentRegistrationPlayer.registration_id,
            )
            .where(
                TournamentRegistration.tournament_id == tournament_id,
                TournamentRegistrationPlayer.user_id == user_id,
                TournamentRegistration.status.in_(statuses),
            )
            .limit(1)
        )
        return result.first()

    # Position allocation

    async def next_position(self, tournament_id: int) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.max(TournamentRegistration.waitlist_position), 0)).where(
                TournamentRegistration.tournament_id == tournament_id,
                TournamentRegistration.status == "waitlisted",
            )
        )
        return result.scalar_one() + 1

    # Enrollment

    async def enroll(self, user_id: int, event_id: int, sub_id: Optional[int] = None) -> EnrollmentResult:
        tournament = await self._get_tournament(event_id)
        if tournament is None:
            raise NotFoundError("Tournament not found")
        tournament_name = tournament.name

        if sub_id is not None:
            division = await self.db.execute(
                select(TournamentDivision.id).where(
                    TournamentDivision.id == sub_id,
                    TournamentDivision.tournament_id == event_id,
                )
            )
            if division.scalar_one_or_none() is None:
                raise NotFoundError("Division not found")

        existing = await self.db.execute(
            select(TournamentRegistration.id)
            .join(
                TournamentRegistrationPlayer,
                TournamentRegistration.id == TournamentRegistrationPlayer.registration_id,
            )
            .where(
                TournamentRegistration.tournament_id == event_id,
                TournamentRegistrationPlayer.user_id == user_id,
                TournamentRegistration.status.notin_(CLOSED_STATUSES),
            )
            .limit(1)
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("You are already registered or on the waitlist for this tournament")

        for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
            position = await self.next_position(event_id)
            registration = TournamentRegistration(
                tournament_id=event_id,
                division_id=sub_id,
                status="waitlisted",
                waitlist_position=position,
                registered_at=self.clock(),
            )
            self.db.add(registration)
            try:
                await self.db.flush()
                registration_id = registration.id
                self.db.add(
                    TournamentRegistrationPlayer(
                        registration_id=registration_id,
                        user_id=user_id,
                        is_captain=True,
                    )
                )
                await self.db.commit()
            except IntegrityError:
                # Another enrollment took this position between our read and write
                await self.db.rollback()
                waitlist_enrollment_retries.inc()
                logger.info("waitlist_enroll_retry", tournament_id=event_id, position=position, attempt=attempt)
                continue

            break
        else:
            raise ConflictError("Waitlist is busy, please try again.")

        record_enrollment(self.event_type.value)
        logger.info(
            "waitlist_enrolled",
            event_type=self.event_type.value,
            tournament_id=event_id,
            registration_id=registration_id,
            user_id=user_id,
            position=position,
        )

        await send_notification(
            self.notifier,
            user_id=user_id,
            type=NOTIFICATION_TYPE,
            title="You're on the waitlist!",
            message=(
                f"You are #{position} on the waitlist for {tournament_name}. "
                "We'll notify you when a spot opens."
            ),
            data={"tournamentId": event_id, "waitlistPosition": position},
        )

        return EnrollmentResult(entry_id=registration_id, position=position)

    # Position lookup

    async def get_position(self, user_id: int, event_id: int) -> Optional[WaitlistPosition]:
        registration = await self._find_user_registration(user_id, event_id, QUEUED_STATUSES)
        if registration is None:
            return None

        total = await self.db.execute(
            select(func.count()).select_from(TournamentRegistration).where(
                TournamentRegistration.tournament_id == event_id,
                TournamentRegistration.status.in_(QUEUED_STATUSES),
            )
        )

        position = registration.waitlist_position
        return WaitlistPosition(
            position=position or 0,
            total_waitlisted=total.scalar_one(),
            estimated_wait_days=position * WAIT_DAYS_PER_POSITION if position else None,
            status=registration.status,
            spot_offered_at=as_utc(registration.spot_offered_at),
            spot_expires_at=as_utc(registration.spot_expires_at),
        )

    # Promotion

    async def promote(self, event_id: int) -> Optional[PromotionResult]:
        result = await self.db.execute(
            select(TournamentRegistration.id)
            .where(
                TournamentRegistration.tournament_id == event_id,
                TournamentRegistration.status == "waitlisted",
            )
            .order_by(TournamentRegistration.waitlist_position.asc())
            .limit(1)
        )
        registration_id = result.scalar_one_or_none()
        if registration_id is None:
            return None

        user_id = await self._resolve_user(registration_id)
        if user_id is None:
            logger.error("waitlist_entry_without_player", tournament_id=event_id, registration_id=registration_id)
            return None

        offered_at = self.clock()
        expires_at = offered_at + SPOT_OFFER_DURATION

        updated = await self.db.execute(
            update(TournamentRegistration)
            .where(
                TournamentRegistration.id == registration_id,
                TournamentRegistration.status == "waitlisted",
            )
            .values(
                status="spot_offered",
                waitlist_position=None,
                spot_offered_at=offered_at,
                spot_expires_at=expires_at,
            )
        )
        if updated.rowcount == 0:
            logger.info("waitlist_promote_skipped", tournament_id=event_id, registration_id=registration_id)
            return None
        await self.db.commit()

        record_promotion(self.event_type.value)
        logger.info(
            "waitlist_spot_offered",
            tournament_id=event_id,
            registration_id=registration_id,
            user_id=user_id,
            expires_at=expires_at.isoformat(),
        )

        tournament_name = await self._tournament_name(event_id)
        if tournament_name:
            await send_notification(
                self.notifier,
                user_id=user_id,
                type=NOTIFICATION_TYPE,
                title="A spot opened up!",
                message=(
                    f"A spot has opened up in {tournament_name}! You have 24 hours to accept. "
                    f"This offer expires on {expires_at.strftime('%b %d, %Y %I:%M %p UTC')}."
                ),
                data={
                    "tournamentId": event_id,
                    "registrationId": registration_id,
                    "spotExpiresAt": expires_at.isoformat(),
                    "action": "accept_waitlist_spot",
                },
            )

        return PromotionResult(user_id=user_id, entry_id=registration_id)

    # Offer lifecycle

    async def _withdraw(self, registration_id: int, from_status: str, notes: str, now: datetime) -> bool:
        updated = await self.db.execute(
            update(TournamentRegistration)
            .where(
                TournamentRegistration.id == registration_id,
                TournamentRegistration.status == from_status,
            )
            .values(
                status="withdrawn",
                withdrawn_at=now,
                waitlist_position=None,
                spot_offered_at=None,
                spot_expires_at=None,
                notes=notes,
            )
        )
        await self.db.commit()
        return updated.rowcount > 0

    async def accept(self, user_id: int, event_id: int) -> WaitlistActionResult:
        offer = await self._find_user_registration(user_id, event_id, ("spot_offered",))
        if offer is None:
            return WaitlistActionResult(success=False, message="No spot offer found")

        now = self.clock()
        expires_at = as_utc(offer.spot_expires_at)
        if expires_at is not None and now > expires_at:
            # Only the caller that withdrew the offer passes the spot on
            if await self._withdraw(offer.id, "spot_offered", "Spot offer expired", now):
                record_offer_transition("expired_on_accept")
                logger.info("waitlist_offer_expired", tournament_id=event_id, registration_id=offer.id, lazy=True)
                await self.reorder(event_id)
                await self.promote(event_id)
            else:
                logger.info("waitlist_offer_already_resolved", registration_id=offer.id)
            return WaitlistActionResult(success=False, message="Spot offer has expired")

        updated = await self.db.execute(
            update(TournamentRegistration)
            .where(
                TournamentRegistration.id == offer.id,
                TournamentRegistration.status == "spot_offered",
            )
            .values(
                status="pending_payment",
                waitlist_position=None,
                spot_offered_at=None,
                spot_expires_at=None,
            )
        )
        if updated.rowcount == 0:
            await self.db.rollback()
            return WaitlistActionResult(success=False, message="No spot offer found")

        # Same transaction as the status change: the seat is counted iff it was taken
        await self.db.execute(
            update(Tournament)
            .where(Tournament.id == event_id)
            .values(current_participants=Tournament.current_participants + 1)
        )
        await self.db.commit()

        record_offer_transition("accepted")
        logger.info("waitlist_spot_accepted", tournament_id=event_id, registration_id=offer.id, user_id=user_id)

        await self.reorder(event_id)

        tournament_name = await self._tournament_name(event_id)
        if tournament_name:
            await send_notification(
                self.notifier,
                user_id=user_id,
                type=NOTIFICATION_TYPE,
                title="You're in!",
                message=(
                    f"You've accepted your spot in {tournament_name}. "
                    "Please complete your registration payment."
                ),
                data={
                    "tournamentId": event_id,
                    "registrationId": offer.id,
                    "action": "complete_payment",
                },
            )

        return WaitlistActionResult(success=True, message="Spot accepted successfully")

    async def decline(self, user_id: int, event_id: int) -> WaitlistActionResult:
        offer = await self._find_user_registration(user_id, event_id, ("spot_offered",))
        if offer is None:
            return WaitlistActionResult(success=False, message="No spot offer found")

        if not await self._withdraw(offer.id, "spot_offered", "Spot offer declined", self.clock()):
            # Accepted or expired since the lookup; no spot was freed here
            logger.info("waitlist_offer_already_resolved", registration_id=offer.id)
            return WaitlistActionResult(success=False, message="No spot offer found")

        record_offer_transition("declined")
        logger.info("waitlist_spot_declined", tournament_id=event_id, registration_id=offer.id, user_id=user_id)

        await self.reorder(event_id)
        await self.promote(event_id)
        return WaitlistActionResult(
            success=True,
            message="Spot declined. The next person in line will be notified.",
        )

    async def leave(self, user_id: int, event_id: int) -> WaitlistActionResult:
        entry = await self._find_user_registration(user_id, event_id, ("waitlisted",))
        if entry is None:
            return WaitlistActionResult(success=False, message="You are not on the waitlist for this event")

        if not await self._withdraw(entry.id, "waitlisted", "Left waitlist", self.clock()):
            logger.info("waitlist_leave_skipped", tournament_id=event_id, registration_id=entry.id)
            return WaitlistActionResult(success=False, message="You are not on the waitlist for this event")

        logger.info("waitlist_left", tournament_id=event_id, registration_id=entry.id, user_id=user_id)
        await self.reorder(event_id)
        return WaitlistActionResult(success=True, message="You have left the waitlist")

    async def expire_overdue_offers(self) -> list[int]:
        """
        Withdraw every offer past its deadline, across all tournaments.

        Returns the tournament id of each offer this call expired (one item
        per offer). Offers another sweeper got to first are not counted.
        """
        now = self.clock()
        result = await self.db.execute(
            select(TournamentRegistration.id, TournamentRegistration.tournament_id)
            .where(
                TournamentRegistration.status == "spot_offered",
                TournamentRegistration.spot_expires_at < now,
            )
            .order_by(TournamentRegistration.spot_expires_at.asc())
        )
        overdue = result.all()

        expired_in = []
        for registration_id, tournament_id in overdue:
            user_id = await self._resolve_user(registration_id)
            if not await self._withdraw(registration_id, "spot_offered", "Spot offer expired automatically", now):
                logger.info("waitlist_offer_already_resolved", registration_id=registration_id)
                continue

            expired_in.append(tournament_id)
            record_offer_transition("expired")
            waitlist_offers_swept.inc()
            logger.info(
                "waitlist_offer_expired",
                tournament_id=tournament_id,
                registration_id=registration_id,
                user_id=user_id,
                lazy=False,
            )

            tournament_name = await self._tournament_name(tournament_id)
            if user_id is not None and tournament_name:
                await send_notification(
                    self.notifier,
                    user_id=user_id,
                    type=NOTIFICATION_TYPE,
                    title="Spot offer expired",
                    message=(
                        f"Your spot offer for {tournament_name} has expired. "
                        "You can re-join the waitlist if you'd still like to participate."
                    ),
                    data={"tournamentId": tournament_id},
                )

            await self.reorder(tournament_id)
            await self.promote(tournament_id)

        return expired_in

    # Reordering

    async def reorder(self, event_id: int) -> None:
        result = await self.db.execute(
            select(TournamentRegistration.id, TournamentRegistration.waitlist_position)
            .where(
                TournamentRegistration.tournament_id == event_id,
                TournamentRegistration.status == "waitlisted",
            )
            .order_by(
                TournamentRegistration.waitlist_position.asc(),
                TournamentRegistration.registered_at.asc(),
                TournamentRegistration.id.asc(),
            )
        )
        waitlisted = result.all()

        # Ascending rewrite never collides: each new position is <= the old one
        moved = 0
        for new_position, (registration_id, old_position) in enumerate(waitlisted, start=1):
            if old_position == new_position:
                continue
            await self.db.execute(
                update(TournamentRegistration)
                .where(TournamentRegistration.id == registration_id)
                .values(waitlist_position=new_position)
            )
            moved += 1

        if moved:
            await self.db.commit()
        logger.info("waitlist_reordered", tournament_id=event_id, waitlisted=len(waitlisted), moved=moved)

    # Organizer views

    async def list_entries(self, event_id: int) -> list[WaitlistEntry]:
        result = await self.db.execute(
            select(
                TournamentRegistration.id,
                TournamentRegistration.waitlist_position,
                TournamentRegistration.status,
                TournamentRegistration.spot_offered_at,
                TournamentRegistration.spot_expires_at,
                TournamentRegistration.registered_at,
                User.id.label("user_id"),
                User.display_name,
                User.email,
            )
            .join(
                TournamentRegistrationPlayer,
                TournamentRegistration.id == TournamentRegistrationPlayer.registration_id,
            )
            .join(User, TournamentRegistrationPlayer.user_id == User.id)
            .where(
                TournamentRegistration.tournament_id == event_id,
                TournamentRegistration.status.in_(QUEUED_STATUSES),
                TournamentRegistrationPlayer.is_captain.is_(True),
            )
            # Open offers have no position; they are ahead of everyone still waiting
            .order_by(
                case((TournamentRegistration.status == "spot_offered", 0), else_=1),
                TournamentRegistration.waitlist_position.asc(),
                TournamentRegistration.registered_at.asc(),
            )
        )

        return [
            WaitlistEntry(
                id=row.id,
                position=row.waitlist_position or 0,
                status=row.status,
                user=WaitlistUser(id=row.user_id, display_name=row.display_name, email=row.email),
                spot_offered_at=as_utc(row.spot_offered_at),
                spot_expires_at=as_utc(row.spot_expires_at),
                registered_at=as_utc(row.registered_at),
            )
            for row in result.all()
        ]

    async def capacity(self, event_id: int) -> EventCapacity:
        tournament = await self._get_tournament(event_id)
        if tournament is None:
            raise NotFoundError("Tournament not found")

        current = tournament.current_participants or 0
        maximum = tournament.max_participants
        return EventCapacity(
            is_full=bool(maximum) and current >= maximum,
            current_count=current,
            max_count=maximum,
        )
