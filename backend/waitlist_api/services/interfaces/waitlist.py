"""
Waitlist strategy interface.

Tournaments and leagues keep their waitlists in unrelated tables and
promote differently (time-boxed offer vs. immediate grant), so each event
kind gets its own implementation behind this one contract.
"""

from abc import ABC, abstractmethod
from typing import Optional

from waitlist_api.schemas.waitlist import (
    EnrollmentResult,
    EventCapacity,
    PromotionResult,
    WaitlistActionResult,
    WaitlistEntry,
    WaitlistPosition,
)


class WaitlistStrategy(ABC):
    """
    Interface for per-event-kind waitlists.

    Implementations:
    - TournamentWaitlist: explicit 1-based positions, 24h spot offers
    - LeagueWaitlist: negative ranks, promotion grants the spot outright
    """

    @abstractmethod
    async def enroll(self, user_id: int, event_id: int, sub_id: Optional[int] = None) -> EnrollmentResult:
        """
        Put a user at the back of the event's waitlist.

        Args:
            user_id: Entrant
            event_id: Tournament or league
            sub_id: Division (tournament) or season (league)

        Raises:
            NotFoundError: event, division or season does not exist
            ConflictError: user already holds a live entry
        """
        pass

    @abstractmethod
    async def get_position(self, user_id: int, event_id: int) -> Optional[WaitlistPosition]:
        pass

    @abstractmethod
    async def promote(self, event_id: int) -> Optional[PromotionResult]:
        """Advance whoever is first in line. None when the waitlist is empty."""
        pass

    @abstractmethod
    async def accept(self, user_id: int, event_id: int) -> WaitlistActionResult:
        pass

    @abstractmethod
    async def decline(self, user_id: int, event_id: int) -> WaitlistActionResult:
        pass

    @abstractmethod
    async def leave(self, user_id: int, event_id: int) -> WaitlistActionResult:
        pass

    @abstractmethod
    async def reorder(self, event_id: int) -> None:
        """Compact waitlist positions after a departure. Idempotent."""
        pass

    @abstractmethod
    async def list_entries(self, event_id: int) -> list[WaitlistEntry]:
        pass

    @abstractmethod
    async def capacity(self, event_id: int) -> EventCapacity:
        pass
