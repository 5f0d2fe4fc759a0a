"""
Tournament tables: the bracketed event kind.

Key design decisions:
- `current_participants` is a denormalized counter bumped with an atomic
  `current_participants + 1` update when a waitlist spot is accepted
- `waitlist_position` is unique per tournament; NULL for every entry that
  is not `waitlisted`, so only live waitlist rows take part in the constraint
- Registrations are never deleted; withdrawn rows stay for history
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from waitlist_api.db.base import Base, TimestampMixin, utcnow

REGISTRATION_STATUSES = (
    "registered",
    "waitlisted",
    "spot_offered",
    "pending_payment",
    "confirmed",
    "withdrawn",
    "disqualified",
)


class Tournament(Base, TimestampMixin):
    __tablename__ = "tournaments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    max_participants = Column(Integer, nullable=True)
    current_participants = Column(Integer, nullable=False, default=0)
    waitlist_enabled = Column(Boolean, nullable=False, default=True)

    divisions = relationship("TournamentDivision", back_populates="tournament")

    __table_args__ = (
        CheckConstraint("current_participants >= 0", name="check_current_participants_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Tournament(id={self.id}, name={self.name}, {self.current_participants}/{self.max_participants})>"


class TournamentDivision(Base, TimestampMixin):
    __tablename__ = "tournament_divisions"

    id = Column(Integer, primary_key=True, index=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)

    tournament = relationship("Tournament", back_populates="divisions")


class TournamentRegistration(Base):
    __tablename__ = "tournament_registrations"

    id = Column(Integer, primary_key=True, index=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False, index=True)
    division_id = Column(Integer, ForeignKey("tournament_divisions.id"), nullable=True)
    status = Column(String(20), nullable=False, default="registered")
    waitlist_position = Column(Integer, nullable=True)
    spot_offered_at = Column(DateTime(timezone=True), nullable=True)
    spot_expires_at = Column(DateTime(timezone=True), nullable=True)
    registered_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    withdrawn_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    players = relationship("TournamentRegistrationPlayer", back_populates="registration")

    __table_args__ = (
        UniqueConstraint("tournament_id", "waitlist_position", name="uq_tournament_waitlist_position"),
        CheckConstraint(
            "status IN ('registered', 'waitlisted', 'spot_offered', 'pending_payment', "
            "'confirmed', 'withdrawn', 'disqualified')",
            name="check_registration_status",
        ),
        CheckConstraint("waitlist_position IS NULL OR waitlist_position > 0", name="check_waitlist_position_positive"),
        # The expiry sweep scans spot_offered rows by deadline across all tournaments
        Index("ix_tournament_registrations_status_expires", "status", "spot_expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<TournamentRegistration(id={self.id}, tournament={self.tournament_id}, "
            f"status={self.status}, position={self.waitlist_position})>"
        )


class TournamentRegistrationPlayer(Base):
    __tablename__ = "tournament_registration_players"

    id = Column(Integer, primary_key=True, index=True)
    registration_id = Column(Integer, ForeignKey("tournament_registrations.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_captain = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    registration = relationship("TournamentRegistration", back_populates="players")

    __table_args__ = (
        UniqueConstraint("registration_id", "user_id", name="uq_tournament_registration_player"),
    )
