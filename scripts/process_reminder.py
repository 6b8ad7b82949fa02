#!/usr/bin/env python3
"""
Run the reminder for one appointment immediately.

Usage:
    python scripts/process_reminder.py <appointment_id>
    python scripts/process_reminder.py <appointment_id> --log-format console

The appointment is re-checked exactly as when the scheduled job fires, so a
cancelled or past appointment is suppressed rather than notified.
"""

import argparse
import asyncio
import sys
from uuid import UUID

import dotenv

dotenv.load_dotenv()

from app.config import settings  # noqa: E402
from app.core.exceptions import AppException  # noqa: E402
from app.core.logging import configure_logging  # noqa: E402
from app.core.redis_client import create_redis_pool  # noqa: E402
from app.database import create_engine_from_settings, create_session_factory  # noqa: E402
from app.dependencies import (  # noqa: E402
    build_channel_senders,
    build_dispatcher,
    build_reminder_scheduler,
    create_http_client,
)
from app.repositories.appointment_repository import SqlAppointmentRepository  # noqa: E402
from app.services.job_scheduler import ArqJobScheduler  # noqa: E402


async def process(appointment_id: UUID) -> str:
    """Process the reminder and return the outcome value."""
    engine = create_engine_from_settings(settings)
    http_client = create_http_client(settings)
    pool = await create_redis_pool(settings)

    try:
        repository = SqlAppointmentRepository(create_session_factory(engine))
        dispatcher = build_dispatcher(build_channel_senders(settings, http_client), settings)
        scheduler = build_reminder_scheduler(
            repository,
            ArqJobScheduler(pool, queue_name=settings.arq_queue_name),
            dispatcher,
            settings,
        )
        outcome = await scheduler.process_reminder(appointment_id)
        return outcome.value
    finally:
        await pool.aclose()
        await http_client.aclose()
        await engine.dispose()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Send the reminder for an appointment now",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python process_reminder.py 6af011a7-44c1-4313-890a-6f973966b10d

  # Human-readable logs
  python process_reminder.py APPOINTMENT_ID --log-format console
        """,
    )

    parser.add_argument("appointment_id", type=UUID, help="Appointment ID")
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["json", "console"],
        help="Log renderer (default: LOG_FORMAT setting)",
    )

    args = parser.parse_args()
    configure_logging(log_format=args.log_format)

    try:
        outcome = asyncio.run(process(args.appointment_id))
    except AppException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)

    print(f"Reminder outcome: {outcome}")


if __name__ == "__main__":
    main()
