"""Entry point: ``python -m notifier``."""
from __future__ import annotations

import asyncio
import logging
import signal
import sys

from common.config import NotifierConfig, configure_logging
from notifier.service import VesselNotifier

logger = logging.getLogger("notifier")


async def _run(config: NotifierConfig):
    notifier = VesselNotifier(config)
    loop = asyncio.get_running_loop()
    shutdown_tasks: set[asyncio.Task] = set()

    def _request_shutdown():
        logger.info("Shutting down...")
        task = loop.create_task(notifier.stop())
        shutdown_tasks.add(task)
        task.add_done_callback(shutdown_tasks.discard)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_shutdown)

    await notifier.run()


def main() -> int:
    configure_logging()
    config = NotifierConfig()
    if not config.ntfy_topic:
        logger.error("NTFY_TOPIC environment variable is required")
        return 1

    asyncio.run(_run(config))
    return 0


if __name__ == "__main__":
    sys.exit(main())
