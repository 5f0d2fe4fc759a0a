"""
Pydantic schemas for the waitlist engine: engine result types and the
request/response bodies of the /waitlist routes.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class EventType(str, Enum):
    TOURNAMENT = "tournament"
    LEAGUE = "league"


# Engine results

class EnrollmentResult(BaseModel):
    entry_id: int
    position: int


class WaitlistPosition(BaseModel):
    position: int
    total_waitlisted: int
    estimated_wait_days: Optional[int] = None
    status: str
    spot_offered_at: Optional[datetime] = None
    spot_expires_at: Optional[datetime] = None


class PromotionResult(BaseModel):
    user_id: int
    entry_id: int


class WaitlistActionResult(BaseModel):
    success: bool
    message: str


class WaitlistUser(BaseModel):
    id: int
    display_name: Optional[str]
    email: str


class WaitlistEntry(BaseModel):
    id: int
    position: int
    status: str
    user: WaitlistUser
    spot_offered_at: Optional[datetime] = None
    spot_expires_at: Optional[datetime] = None
    registered_at: datetime


class EventCapacity(BaseModel):
    is_full: bool
    current_count: int
    max_count: Optional[int]


# Requests

class WaitlistJoinRequest(BaseModel):
    event_type: EventType
    event_id: int = Field(..., gt=0)
    # division id for tournaments, season id for leagues
    event_sub_id: Optional[int] = Field(None, gt=0)


class WaitlistActionRequest(BaseModel):
    event_type: EventType
    event_id: int = Field(..., gt=0)


# Responses

class WaitlistJoinResponse(BaseModel):
    message: str
    registration_id: int
    position: int


class WaitlistPositionResponse(BaseModel):
    on_waitlist: bool
    message: Optional[str] = None
    position: Optional[int] = None
    total_waitlisted: Optional[int] = None
    estimated_wait_days: Optional[int] = None
    status: Optional[str] = None
    spot_offered_at: Optional[datetime] = None
    spot_expires_at: Optional[datetime] = None


class WaitlistEntriesResponse(BaseModel):
    entries: list[WaitlistEntry]
    total: int


class WaitlistProcessResponse(BaseModel):
    message: str
    processed: bool
    user_id: Optional[int] = None
    registration_id: Optional[int] = None


class WaitlistStatusResponse(BaseModel):
    is_full: bool
    current_count: int
    max_count: Optional[int]
    waitlist_enabled: bool = True
    waitlist_count: int
    cached: bool = False


class SweepResponse(BaseModel):
    expired: int
