"""
Domain errors raised by the waitlist engine.

Each error carries the HTTP status the API layer maps it to, so services
stay free of FastAPI types.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class WaitlistError(Exception):
    """Base class for waitlist errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: str = "Waitlist error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class NotFoundError(WaitlistError):
    """A tournament, league or season does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found"


class ForbiddenError(WaitlistError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Access denied"


class ConflictError(WaitlistError):
    """Duplicate enrollment, or the allocator lost every retry."""

    status_code = status.HTTP_409_CONFLICT
    detail = "Conflict"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(WaitlistError)
    async def waitlist_error_handler(request: Request, exc: WaitlistError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
