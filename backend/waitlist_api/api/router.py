"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from waitlist_api.api.routes import waitlist

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(waitlist.router)
