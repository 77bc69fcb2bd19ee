"""Notification worker CLI entrypoint (single pass / continuous modes)."""

from __future__ import annotations

import argparse
import logging
import sys

from .config import load_settings
from .services.delivery import NotificationWorker
from .services.notifier import WebPushNotifier
from .services.timers import TimerService
from .store import PostgresKeyValueStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="chillcast-worker", description="Deliver drink-ready notifications."
    )
    p.add_argument("--once", action="store_true",
                   help="Run a single delivery pass and exit.")
    p.add_argument("--poll-seconds", type=float, default=None, metavar="N",
                   help="Seconds between passes. Env: WORKER_POLL_SECONDS")
    return p


def main(argv: list[str] | None = None) -> None:
    """Parse CLI args, build the worker and run it."""
    args = _build_parser().parse_args(argv)
    settings = load_settings()

    if not settings.database_url:
        logger.error("Required environment variable 'DATABASE_URL' is not set.")
        sys.exit(1)

    try:
        vapid_private_key, vapid_subject = settings.require_vapid()
    except RuntimeError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    store = PostgresKeyValueStore(settings.database_url)
    try:
        store.init_schema()
    except Exception as exc:
        logger.exception("Schema init failed: %s", exc)
        sys.exit(1)

    notifier = WebPushNotifier(
        vapid_private_key,
        vapid_subject,
        timeout_seconds=settings.notify_timeout_seconds,
    )
    worker = NotificationWorker(
        TimerService(store), notifier, max_attempts=settings.max_delivery_attempts
    )

    if args.once:
        logger.info("Mode: ONCE")
        _, failures = worker.run_due()
        if failures:
            sys.exit(2)
        return

    poll_seconds = args.poll_seconds or settings.worker_poll_seconds
    logger.info("Mode: CONTINUOUS  poll every %.0f s", poll_seconds)
    try:
        worker.run_forever(poll_seconds)
    except KeyboardInterrupt:
        logger.info("Worker stopped.")


if __name__ == "__main__":
    main()
