"""Entry point for the trackforge scheduler worker."""

import asyncio
import logging
import signal
import sys

from ..core import Workspace

# Set up logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def main() -> None:
    """Run the scheduler worker until SIGTERM."""
    worker = Workspace().worker()
    worker_task = asyncio.create_task(worker.start())

    loop = asyncio.get_running_loop()

    def handle_sigterm() -> None:
        logger.info("Received shutdown signal")
        worker_task.cancel()

    loop.add_signal_handler(signal.SIGTERM, handle_sigterm)

    try:
        await worker_task
    except asyncio.CancelledError:
        logger.info("Worker shutdown complete")
    except Exception as e:
        logger.error(f"Worker error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Worker stopped by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)
