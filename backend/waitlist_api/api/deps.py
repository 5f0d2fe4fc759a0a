"""
Request dependencies: caller identity, engine wiring, internal auth.

Authentication happens upstream; the gateway forwards the resolved user
as the X-User-Id header.
"""

import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist_api.core.config import get_settings
from waitlist_api.db.session import get_db
from waitlist_api.models.user import User
from waitlist_api.services.waitlist_service import WaitlistService


async def get_current_user_id(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    db: AsyncSession = Depends(get_db),
) -> int:
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    result = await db.execute(select(User.id).where(User.id == x_user_id, User.is_active.is_(True)))
    user_id = result.scalar_one_or_none()
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user_id


def get_waitlist_service(db: AsyncSession = Depends(get_db)) -> WaitlistService:
    return WaitlistService(db)


def require_internal_token(x_internal_token: Optional[str] = Header(None, alias="X-Internal-Token")) -> None:
    expected = get_settings().INTERNAL_API_TOKEN
    if not x_internal_token or not secrets.compare_digest(x_internal_token, expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid internal token")
