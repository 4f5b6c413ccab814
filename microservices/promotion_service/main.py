"""
Promotion Service Main

Process entrypoint for the promotion engine.

Commands:
    run      Start the scheduler and keep applying/expiring campaigns until
             SIGINT or SIGTERM
    tick     Run a single scheduler sweep and exit
    reindex  Rebuild the whole product index from the catalog and exit

Usage:
    python -m microservices.promotion_service.main run
    python -m microservices.promotion_service.main reindex
"""

import argparse
import asyncio
import signal
import sys

from core.config import get_settings
from core.logger import setup_service_logger

from .factory import PromotionServiceFactory

SERVICE_NAME = "promotion_service"

logger = setup_service_logger(SERVICE_NAME)


async def run_service() -> None:
    """Run the scheduler until a termination signal arrives"""
    factory = PromotionServiceFactory(start_scheduler=True)
    await factory.initialize()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            pass

    logger.info(f"{SERVICE_NAME} running (environment={get_settings().environment})")
    try:
        await stop_event.wait()
    finally:
        await factory.close()


async def run_tick() -> int:
    """Run one sweep; exit code 1 when any campaign failed"""
    factory = PromotionServiceFactory(start_scheduler=False)
    await factory.initialize()
    try:
        result = await factory.scheduler.tick()
        logger.info(
            f"Sweep finished: applied={result.applied} "
            f"expired={result.expired} failed={result.failed}"
        )
        return 1 if result.failed else 0
    finally:
        await factory.close()


async def run_reindex() -> int:
    """Rebuild the product index"""
    factory = PromotionServiceFactory(start_scheduler=False)
    await factory.initialize()
    try:
        written = await factory.index_sync.reindex_all()
        logger.info(f"Reindex complete: {written} products")
        return 0
    finally:
        await factory.close()


def main(argv=None) -> int:
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="Promotion engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("command", choices=["run", "tick", "reindex"],
                        help="What to do (default: run)", nargs="?", default="run")
    args = parser.parse_args(argv)

    if args.command == "tick":
        return asyncio.run(run_tick())
    if args.command == "reindex":
        return asyncio.run(run_reindex())

    asyncio.run(run_service())
    return 0


if __name__ == "__main__":
    sys.exit(main())
