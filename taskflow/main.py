from __future__ import annotations

import argparse
import logging
import sys
import time

from taskflow.config import SETTINGS
from taskflow.domain.timezone import format_datetime
from taskflow.infra.db import create_schema, init_db
from taskflow.infra.logging import setup_logging
from taskflow.infra.repository import TodoRepository
from taskflow.services.reminder_service import ReminderService

logger = logging.getLogger("taskflow")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Poll due reminders for a user.")
    parser.add_argument("--user-id", type=int, required=True)
    parser.add_argument("--interval", type=int, default=SETTINGS.reminder_poll_seconds)
    parser.add_argument("--once", action="store_true", help="run a single sweep and exit")
    parser.add_argument("--create-schema", action="store_true", help="create tables before polling")
    return parser.parse_args(argv)


def run_sweep(service: ReminderService, user_id: int) -> int:
    notifications = service.check_notifications(user_id)
    for payload in notifications:
        logger.info(
            "[%s] %s: %s (due %s)",
            payload.priority.value,
            payload.title,
            payload.message,
            format_datetime(payload.due_date),
        )
    return len(notifications)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    setup_logging()
    try:
        init_db()
        if args.create_schema:
            create_schema()
    except Exception as exc:  # noqa: BLE001
        logger.error("DB error: %s", exc)
        return 1

    service = ReminderService(TodoRepository())
    if args.once:
        run_sweep(service, args.user_id)
        return 0

    logger.info("Polling reminders for user %s every %ss", args.user_id, args.interval)
    try:
        while True:
            run_sweep(service, args.user_id)
            time.sleep(args.interval)
    except KeyboardInterrupt:
        logger.info("Stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
