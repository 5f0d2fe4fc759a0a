"""
One-shot expiry sweep for tournament spot offers.

Meant for an external scheduler; run it more often than the 24h offer
window, hourly is typical:

    python -m waitlist_api.jobs.expire_offers

Running it again right after a successful pass expires nothing.
"""

import asyncio

from waitlist_api.core.logging import get_logger, setup_logging
from waitlist_api.db.session import AsyncSessionLocal, dispose_engine
from waitlist_api.services.waitlist_service import WaitlistService

logger = get_logger(__name__)


async def run_sweep() -> int:
    try:
        async with AsyncSessionLocal() as session:
            expired = await WaitlistService(session).sweep_expired_offers()
    finally:
        await dispose_engine()
    return expired


def main() -> None:
    setup_logging()
    expired = asyncio.run(run_sweep())
    logger.info("expire_offers_job_finished", expired=expired)


if __name__ == "__main__":
    main()
