#!/usr/bin/env python3
"""
AuthorityPilot
Autonomous agent worker

Runs the autonomous loops without the web API.
"""
import asyncio
from loguru import logger

from authority_pilot.logging_config import setup_logging
from authority_pilot.scheduler import scheduler


async def run_worker():
    """Start the scheduler and keep it running until cancelled."""
    await scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()


def main():
    """Main entry point."""
    # Setup logging
    setup_logging()

    logger.info("Starting AuthorityPilot worker")

    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.exception(f"Worker error: {e}")
        raise
    finally:
        logger.info("Worker shutdown")


if __name__ == "__main__":
    main()
