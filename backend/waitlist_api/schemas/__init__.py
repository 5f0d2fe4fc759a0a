from waitlist_api.schemas.waitlist import (
    EventType,
    EnrollmentResult,
    WaitlistPosition,
    PromotionResult,
    WaitlistActionResult,
    WaitlistUser,
    WaitlistEntry,
    EventCapacity,
    WaitlistJoinRequest,
    WaitlistActionRequest,
    WaitlistJoinResponse,
    WaitlistPositionResponse,
    WaitlistEntriesResponse,
    WaitlistProcessResponse,
    WaitlistStatusResponse,
    SweepResponse,
)

__all__ = [
    "EventType",
    "EnrollmentResult", "WaitlistPosition", "PromotionResult", "WaitlistActionResult",
    "WaitlistUser", "WaitlistEntry", "EventCapacity",
    "WaitlistJoinRequest", "WaitlistActionRequest",
    "WaitlistJoinResponse", "WaitlistPositionResponse", "WaitlistEntriesResponse",
    "WaitlistProcessResponse", "WaitlistStatusResponse", "SweepResponse",
]
