"""
Command line entry point.

    python -m carebook                         # run the API (same as "serve")
    python -m carebook seed-schedules          # default weekly hours for every doctor
    python -m carebook generate-slots          # slots for all doctors, 30 days ahead
    python -m carebook generate-slots 12 60    # doctor 12 only, 60 days ahead
"""

import argparse
import logging
import sys

import uvicorn

from . import config
from .db import SessionLocal, init_db
from .logging_config import configure_logging
from .models import Base
from .seed import GENERATE_DAYS_AHEAD, generate_upcoming_slots, seed_schedules

logger = logging.getLogger("carebook")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="carebook", description="CareBook backend")
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("serve", help="run the API server (default)")
    commands.add_parser("seed-schedules", help="put every doctor on the default weekly schedule")

    generate = commands.add_parser("generate-slots", help="create bookable slots from today onwards")
    generate.add_argument("doctor_id", nargs="?", type=int, help="only this doctor (default: all)")
    generate.add_argument("days", nargs="?", type=int, default=GENERATE_DAYS_AHEAD,
                          help=f"days ahead (default: {GENERATE_DAYS_AHEAD})")
    return parser


def serve():
    uvicorn.run(
        "carebook.main:app",
        host=config.HOST,
        port=config.PORT,
        reload=not config.IS_PRODUCTION,
        timeout_graceful_shutdown=5,
    )


def run_job(command: str, args) -> int:
    """Run a maintenance command against the configured database; returns the exit code."""
    configure_logging()
    init_db(Base)
    db = SessionLocal()
    try:
        if command == "seed-schedules":
            result = seed_schedules(db)
            if not result["doctors"]:
                logger.warning("⚠️  Nothing to do: no doctors in the database")
            return 0

        try:
            result = generate_upcoming_slots(db, args.doctor_id, args.days)
        except LookupError as e:
            logger.error("❌ %s", e)
            return 1
        logger.info(
            "📊 Summary: %d doctors, %d errors, %d slots generated (%s to %s)",
            result["doctors"], result["errors"], result["slotsGenerated"],
            result["startDate"], result["endDate"],
        )
        return 1 if result["errors"] else 0
    finally:
        db.close()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.command in (None, "serve"):
        serve()
        return 0
    return run_job(args.command, args)


if __name__ == "__main__":
    sys.exit(main())
