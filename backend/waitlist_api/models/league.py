"""
League tables: the season-scoped ranked event kind.

Waitlist order lives in `rank`: positive ranks are confirmed standing,
negative ranks are the waitlist (-1 first in line). The unique
(season_id, rank) constraint keeps both sequences free of duplicates.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from waitlist_api.db.base import Base, TimestampMixin, utcnow


class League(Base, TimestampMixin):
    __tablename__ = "leagues"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    seasons = relationship("LeagueSeason", back_populates="league")

    def __repr__(self) -> str:
        return f"<League(id={self.id}, name={self.name})>"


class LeagueSeason(Base, TimestampMixin):
    __tablename__ = "league_seasons"

    id = Column(Integer, primary_key=True, index=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    season_number = Column(Integer, nullable=False)
    max_participants = Column(Integer, nullable=True)

    league = relationship("League", back_populates="seasons")

    __table_args__ = (
        UniqueConstraint("league_id", "season_number", name="uq_league_season_number"),
    )


class LeagueParticipant(Base, TimestampMixin):
    __tablename__ = "league_participants"

    id = Column(Integer, primary_key=True, index=True)
    season_id = Column(Integer, ForeignKey("league_seasons.id"), nullable=False, index=True)
    rank = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="active")

    players = relationship("LeagueParticipantPlayer", back_populates="participant")

    __table_args__ = (
        UniqueConstraint("season_id", "rank", name="uq_league_season_rank"),
        CheckConstraint("status IN ('active', 'withdrawn', 'disqualified')", name="check_participant_status"),
    )

    def __repr__(self) -> str:
        return f"<LeagueParticipant(id={self.id}, season={self.season_id}, rank={self.rank})>"


class LeagueParticipantPlayer(Base):
    __tablename__ = "league_participant_players"

    id = Column(Integer, primary_key=True, index=True)
    participant_id = Column(Integer, ForeignKey("league_participants.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_captain = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    participant = relationship("LeagueParticipant", back_populates="players")

    __table_args__ = (
        UniqueConstraint("participant_id", "user_id", name="uq_league_participant_player"),
    )
