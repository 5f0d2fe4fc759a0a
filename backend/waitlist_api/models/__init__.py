from waitlist_api.models.user import User
from waitlist_api.models.tournament import (
    Tournament,
    TournamentDivision,
    TournamentRegistration,
    TournamentRegistrationPlayer,
)
from waitlist_api.models.league import League, LeagueSeason, LeagueParticipant, LeagueParticipantPlayer
from waitlist_api.models.notification import Notification

__all__ = [
    "User",
    "Tournament", "TournamentDivision", "TournamentRegistration", "TournamentRegistrationPlayer",
    "League", "LeagueSeason", "LeagueParticipant", "LeagueParticipantPlayer",
    "Notification",
]
