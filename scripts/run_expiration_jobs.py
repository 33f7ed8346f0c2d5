# scripts/run_expiration_jobs.py

import os
import sys
import argparse
import logging

from dotenv import load_dotenv
from sqlmodel import Session

# Ensure root path for relative imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.database import engine, create_db_and_tables
from services.addon_expiration import (
    mark_expired_items,
    process_expired_addons,
    run_expiration_jobs,
    send_warning_emails,
)

# ✅ Load environment variables
load_dotenv()

JOBS = {
    "mark": mark_expired_items,
    "warn": send_warning_emails,
    "process": process_expired_addons,
    "all": run_expiration_jobs,
}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the add-on expiration jobs once.")
    parser.add_argument(
        "--job",
        choices=sorted(JOBS),
        default="all",
        help="Which phase to run (default: all, in mark → warn → process order)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    create_db_and_tables()

    with Session(engine) as session:
        report = JOBS[args.job](session)

    print(report.model_dump_json(indent=2))
    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(main())
