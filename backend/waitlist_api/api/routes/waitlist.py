"""
Waitlist endpoints for tournaments and leagues.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist_api.api.deps import (
    get_current_user_id,
    get_waitlist_service,
    require_internal_token,
)
from waitlist_api.core.errors import ForbiddenError, NotFoundError
from waitlist_api.core.logging import get_logger
from waitlist_api.db.session import get_db
from waitlist_api.models.league import League
from waitlist_api.models.tournament import Tournament
from waitlist_api.schemas.waitlist import (
    EventType,
    SweepResponse,
    WaitlistActionRequest,
    WaitlistActionResult,
    WaitlistEntriesResponse,
    WaitlistJoinRequest,
    WaitlistJoinResponse,
    WaitlistPositionResponse,
    WaitlistProcessResponse,
    WaitlistStatusResponse,
)
from waitlist_api.services.cache_service import get_cached_status, set_cached_status
from waitlist_api.services.waitlist_service import WaitlistService

logger = get_logger(__name__)
router = APIRouter(prefix="/waitlist", tags=["Waitlist"])


async def _ensure_organizer(db: AsyncSession, event_type: EventType, event_id: int, user_id: int, action: str) -> None:
    """404 for an unknown event, 403 unless the caller organizes it."""
    model = Tournament if event_type == EventType.TOURNAMENT else League
    label = event_type.value

    result = await db.execute(select(model.organizer_id).where(model.id == event_id))
    organizer_id = result.scalar_one_or_none()
    if organizer_id is None:
        raise NotFoundError(f"{label.capitalize()} not found")
    if organizer_id != user_id:
        raise ForbiddenError(f"Only the {label} organizer can {action}")


def _raise_unless_success(result: WaitlistActionResult) -> WaitlistActionResult:
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
    return result


@router.post("/", response_model=WaitlistJoinResponse, status_code=status.HTTP_201_CREATED)
async def join_waitlist(
    body: WaitlistJoinRequest,
    user_id: int = Depends(get_current_user_id),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """
    Add the caller to a waitlist.

    The caller is expected to have checked /status first; the engine does
    not refuse enrollment into an event that still has room.
    """
    result = await service.enroll(user_id, body.event_type, body.event_id, body.event_sub_id)
    return WaitlistJoinResponse(
        message="Successfully added to waitlist",
        registration_id=result.entry_id,
        position=result.position,
    )


@router.delete("/", response_model=WaitlistActionResult)
async def leave_waitlist(
    event_type: EventType = Query(...),
    event_id: int = Query(..., gt=0),
    user_id: int = Depends(get_current_user_id),
    service: WaitlistService = Depends(get_waitlist_service),
):
    return _raise_unless_success(await service.leave(user_id, event_type, event_id))


@router.get("/position", response_model=WaitlistPositionResponse)
async def get_waitlist_position(
    event_type: EventType = Query(...),
    event_id: int = Query(..., gt=0),
    user_id: int = Depends(get_current_user_id),
    service: WaitlistService = Depends(get_waitlist_service),
):
    position = await service.get_position(user_id, event_type, event_id)
    if position is None:
        return WaitlistPositionResponse(
            on_waitlist=False,
            message="You are not on the waitlist for this event",
        )
    return WaitlistPositionResponse(on_waitlist=True, **position.model_dump())


@router.post("/accept", response_model=WaitlistActionResult)
async def accept_spot(
    body: WaitlistActionRequest,
    user_id: int = Depends(get_current_user_id),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Accept an offered spot. Tournaments only."""
    return _raise_unless_success(await service.accept(user_id, body.event_type, body.event_id))


@router.post("/decline", response_model=WaitlistActionResult)
async def decline_spot(
    body: WaitlistActionRequest,
    user_id: int = Depends(get_current_user_id),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Decline an offered spot; the next person in line gets the offer."""
    return _raise_unless_success(await service.decline(user_id, body.event_type, body.event_id))


@router.get("/entries", response_model=WaitlistEntriesResponse)
async def list_waitlist_entries(
    event_type: EventType = Query(...),
    event_id: int = Query(..., gt=0),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Organizer view of everyone waiting, first in line first."""
    await _ensure_organizer(db, event_type, event_id, user_id, "view waitlist entries")
    entries = await service.list_entries(event_type, event_id)
    return WaitlistEntriesResponse(entries=entries, total=len(entries))


@router.post("/process", response_model=WaitlistProcessResponse)
async def process_waitlist(
    body: WaitlistActionRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Offer a freed spot to the next person in line (organizer only)."""
    await _ensure_organizer(db, body.event_type, body.event_id, user_id, "process the waitlist")

    result = await service.promote(body.event_type, body.event_id)
    if result is None:
        return WaitlistProcessResponse(message="No one on the waitlist to offer a spot to", processed=False)

    return WaitlistProcessResponse(
        message="Spot offered to next person in line",
        processed=True,
        user_id=result.user_id,
        registration_id=result.entry_id,
    )


@router.get("/status", response_model=WaitlistStatusResponse)
async def get_waitlist_status(
    event_type: EventType = Query(...),
    event_id: int = Query(..., gt=0),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """
    Capacity and waitlist size for an event. Public.
    Cached in Redis; every waitlist change for the event drops the entry.
    """
    cached = await get_cached_status(event_type.value, event_id)
    if cached:
        cached["cached"] = True
        return WaitlistStatusResponse(**cached)

    capacity = await service.is_event_full(event_type, event_id)
    entries = await service.list_entries(event_type, event_id)

    response_data = {
        "is_full": capacity.is_full,
        "current_count": capacity.current_count,
        "max_count": capacity.max_count,
        "waitlist_enabled": True,
        "waitlist_count": len(entries),
        "cached": False,
    }
    await set_cached_status(event_type.value, event_id, response_data)
    return WaitlistStatusResponse(**response_data)


@router.post("/sweep", response_model=SweepResponse, dependencies=[Depends(require_internal_token)])
async def sweep_expired_offers(service: WaitlistService = Depends(get_waitlist_service)):
    """Expire overdue spot offers. Called by the scheduler, not by users."""
    expired = await service.sweep_expired_offers()
    return SweepResponse(expired=expired)
