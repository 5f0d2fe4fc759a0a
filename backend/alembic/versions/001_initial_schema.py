"""Initial schema: users, tournaments, leagues, waitlist entries, notifications.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # Tournaments (bracketed events)
    op.create_table(
        "tournaments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("max_participants", sa.Integer(), nullable=True),
        sa.Column("current_participants", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("waitlist_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("current_participants >= 0", name="check_current_participants_non_negative"),
    )
    op.create_index("ix_tournaments_id", "tournaments", ["id"])

    op.create_table(
        "tournament_divisions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_tournament_divisions_id", "tournament_divisions", ["id"])
    op.create_index("ix_tournament_divisions_tournament_id", "tournament_divisions", ["tournament_id"])

    op.create_table(
        "tournament_registrations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id"), nullable=False),
        sa.Column("division_id", sa.Integer(), sa.ForeignKey("tournament_divisions.id"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'registered'")),
        sa.Column("waitlist_position", sa.Integer(), nullable=True),
        sa.Column("spot_offered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("spot_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("withdrawn_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        # One waitlisted entry per slot. Non-waitlisted rows carry NULL and never collide.
        sa.UniqueConstraint("tournament_id", "waitlist_position", name="uq_tournament_waitlist_position"),
        sa.CheckConstraint(
            "status IN ('registered', 'waitlisted', 'spot_offered', 'pending_payment', "
            "'confirmed', 'withdrawn', 'disqualified')",
            name="check_registration_status",
        ),
        sa.CheckConstraint("waitlist_position IS NULL OR waitlist_position > 0", name="check_waitlist_position_positive"),
    )
    op.create_index("ix_tournament_registrations_id", "tournament_registrations", ["id"])
    op.create_index("ix_tournament_registrations_tournament_id", "tournament_registrations", ["tournament_id"])
    # The expiry sweep scans spot_offered rows by deadline across all tournaments
    op.create_index(
        "ix_tournament_registrations_status_expires",
        "tournament_registrations",
        ["status", "spot_expires_at"],
    )

    op.create_table(
        "tournament_registration_players",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("registration_id", sa.Integer(), sa.ForeignKey("tournament_registrations.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("is_captain", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("registration_id", "user_id", name="uq_tournament_registration_player"),
    )
    op.create_index("ix_tournament_registration_players_id", "tournament_registration_players", ["id"])
    op.create_index(
        "ix_tournament_registration_players_registration_id",
        "tournament_registration_players",
        ["registration_id"],
    )
    op.create_index("ix_tournament_registration_players_user_id", "tournament_registration_players", ["user_id"])

    # Leagues (season-scoped ranked events)
    op.create_table(
        "leagues",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_leagues_id", "leagues", ["id"])

    op.create_table(
        "league_seasons",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("league_id", sa.Integer(), sa.ForeignKey("leagues.id"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("season_number", sa.Integer(), nullable=False),
        sa.Column("max_participants", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("league_id", "season_number", name="uq_league_season_number"),
    )
    op.create_index("ix_league_seasons_id", "league_seasons", ["id"])
    op.create_index("ix_league_seasons_league_id", "league_seasons", ["league_id"])

    op.create_table(
        "league_participants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("season_id", sa.Integer(), sa.ForeignKey("league_seasons.id"), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        *_timestamps(),
        # Positive ranks are standings, negative ranks the waitlist; both must be distinct
        sa.UniqueConstraint("season_id", "rank", name="uq_league_season_rank"),
        sa.CheckConstraint("status IN ('active', 'withdrawn', 'disqualified')", name="check_participant_status"),
    )
    op.create_index("ix_league_participants_id", "league_participants", ["id"])
    op.create_index("ix_league_participants_season_id", "league_participants", ["season_id"])

    op.create_table(
        "league_participant_players",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("league_participants.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("is_captain", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("participant_id", "user_id", name="uq_league_participant_player"),
    )
    op.create_index("ix_league_participant_players_id", "league_participant_players", ["id"])
    op.create_index("ix_league_participant_players_participant_id", "league_participant_players", ["participant_id"])
    op.create_index("ix_league_participant_players_user_id", "league_participant_players", ["user_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("league_participant_players")
    op.drop_table("league_participants")
    op.drop_table("league_seasons")
    op.drop_table("leagues")
    op.drop_table("tournament_registration_players")
    op.drop_table("tournament_registrations")
    op.drop_table("tournament_divisions")
    op.drop_table("tournaments")
    op.drop_table("users")
