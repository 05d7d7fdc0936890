"""Entry point: python -m nudge"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys

from nudge.infrastructure.config import DB_PATH
from nudge.infrastructure.logger import logger


async def main() -> None:
    from nudge.app import Orchestrator

    orchestrator = Orchestrator()

    # Handle graceful shutdown
    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        logger.info("Received shutdown signal")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await orchestrator.start()

        # Wait for shutdown signal
        await shutdown_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        await orchestrator.shutdown()


def run_notifications(argv: list[str]) -> None:
    """Print a user's notifications, newest first, as JSON."""
    from nudge.infrastructure.database import AppDatabase

    parser = argparse.ArgumentParser(prog="nudge notifications", description="List a user's notifications")
    parser.add_argument("user_id")
    parser.add_argument("--limit", type=int, default=50)
    parser.add_argument("--offset", type=int, default=0)
    args = parser.parse_args(argv)

    db = AppDatabase()
    db.init(DB_PATH)
    try:
        rows = db.notification_repo.list_for_user(args.user_id, limit=args.limit, offset=args.offset)
        print(json.dumps([n.model_dump(mode="json") for n in rows], indent=2))
    finally:
        db.close()


def run() -> None:
    if len(sys.argv) > 1 and sys.argv[1] == "notifications":
        run_notifications(sys.argv[2:])
        return

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
