#!/usr/bin/env python3
"""
SmartPick - Standalone Expiry Sweeper

Runs the reservation expiry sweep outside the API process, e.g. as a
separate worker when the API runs with EXPIRY_SWEEP_ENABLED=false.

    python run_sweeper.py            # loop every EXPIRY_SWEEP_INTERVAL_SECONDS
    python run_sweeper.py --once     # single sweep, then exit

Requires DATABASE_URL and SECRET_KEY.
"""
import argparse
import asyncio
import logging
import os
import signal
import sys
from datetime import datetime, timezone

# Setup logging first
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

REQUIRED_VARS = ["DATABASE_URL", "SECRET_KEY"]


def handle_shutdown(task: asyncio.Task):
    logger.info("Received shutdown signal, stopping sweeper...")
    task.cancel()


async def main(once: bool) -> int:
    # Import after env validation
    from smartpick.core.config import settings
    from smartpick.core.database import engine
    from smartpick.jobs.expiry_sweeper import (
        expiry_sweep_scheduler,
        run_expiry_sweep,
        sweeper_heartbeat,
    )

    logger.info("=" * 60)
    logger.info("SmartPick Expiry Sweeper")
    logger.info("=" * 60)
    logger.info(f"Started at: {datetime.now(timezone.utc).isoformat()}")
    logger.info(f"Interval: {settings.EXPIRY_SWEEP_INTERVAL_SECONDS} seconds")

    try:
        if once:
            processed = await run_expiry_sweep()
            logger.info(f"Single sweep complete: {processed} reservations expired")
            return 1 if sweeper_heartbeat["errors"] else 0

        task = asyncio.create_task(expiry_sweep_scheduler())
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, handle_shutdown, task)
        try:
            await task
        except asyncio.CancelledError:
            logger.info("Sweeper stopped")
        logger.info(f"Final heartbeat: {sweeper_heartbeat}")
        return 0
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="SmartPick reservation expiry sweeper")
    parser.add_argument("--once", action="store_true", help="run a single sweep and exit")
    args = parser.parse_args()

    missing = [var for var in REQUIRED_VARS if not os.getenv(var)]
    if missing:
        logger.error(f"Missing required environment variables: {missing}")
        sys.exit(1)

    sys.exit(asyncio.run(main(args.once)))
