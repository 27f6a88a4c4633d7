"""
Expiry Sweeper

Background loop that settles timed-out reservations every
EXPIRY_SWEEP_INTERVAL_SECONDS: each tick opens its own session and runs the
global ReservationService.sweep_expired(). Started from the API lifespan or
from run_sweeper.py. A failed tick is logged and counted; the loop goes on.
"""
import asyncio
import logging
from datetime import datetime, timezone

from smartpick.core.config import settings
from smartpick.core.database import get_db_session
from smartpick.services.reservation_service import ReservationService

logger = logging.getLogger(__name__)

# Exposed on /health
sweeper_heartbeat: dict = {
    "last_run": None,
    "last_success": None,
    "records_processed": 0,
    "errors": 0,
}


async def run_expiry_sweep(session_factory=None) -> int:
    """
    Run one global sweep and update the heartbeat.

    Returns the number of reservations expired on this tick (0 on failure).
    """
    session_factory = session_factory or get_db_session
    sweeper_heartbeat["last_run"] = datetime.now(timezone.utc).isoformat()

    try:
        async with session_factory() as db:
            processed = await ReservationService(db).sweep_expired()
    except Exception as e:
        sweeper_heartbeat["errors"] += 1
        logger.error(f"Expiry sweep failed: {e}", exc_info=True)
        return 0

    sweeper_heartbeat["last_success"] = datetime.now(timezone.utc).isoformat()
    sweeper_heartbeat["records_processed"] += processed
    if processed > 0:
        logger.info(f"Expiry sweep: expired {processed} reservations")
    return processed


async def expiry_sweep_scheduler(interval_seconds: int = None, session_factory=None):
    """Run the sweep forever at a fixed interval. Stops when cancelled."""
    interval_seconds = interval_seconds or settings.EXPIRY_SWEEP_INTERVAL_SECONDS
    logger.info(f"Expiry sweep scheduler started (interval: {interval_seconds} seconds)")

    while True:
        await run_expiry_sweep(session_factory)
        await asyncio.sleep(interval_seconds)
