"""
CLI for the booked-hours report.

Usage examples:

    # Run the report once (reads .env)
    python -m app.cli run

    # Compute everything but only log what would be written
    python -m app.cli run --dry-run

    # Run now, then every day at 17:00
    python -m app.cli schedule --at 17:00

    # Write detail.csv / summary.csv locally instead of to Sheets
    python -m app.cli export out/
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

# --- Make src/ importable ----------------------------------------------------

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from dotenv import load_dotenv

from booked_hours.config import Config
from booked_hours.data_io import save_report_to_csv
from booked_hours.errors import ReportError
from booked_hours.job import ReportJob, run_scheduled

logger = logging.getLogger("booked_hours.cli")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_config(args: argparse.Namespace) -> Config:
    config = Config.from_env()
    if getattr(args, "dry_run", False):
        config = replace(config, dry_run=True)
    try:
        config.validate_for_live_run()
    except ValueError as e:
        raise SystemExit(f"[{args.command}] {e}")
    return config


# --- Commands ----------------------------------------------------------------


def cmd_run(args: argparse.Namespace) -> None:
    """
    Run the report once; exit with status 1 if it failed.
    """
    job = ReportJob(load_config(args))
    status = job.run_once()
    if status is None or not status.success:
        raise SystemExit(1)


def cmd_schedule(args: argparse.Namespace) -> None:
    """
    Run eagerly, then daily, until interrupted.
    """
    config = load_config(args)
    job = ReportJob(config)
    try:
        run_scheduled(
            job,
            at=args.at or config.schedule_time,
            run_on_start=not args.no_initial_run,
        )
    except KeyboardInterrupt:
        logger.info("Scheduler stopped")


def cmd_export(args: argparse.Namespace) -> None:
    """
    Compute the report from the database and save it as CSV files.
    """
    # Export never touches Sheets, so only the database settings matter.
    config = replace(Config.from_env(), dry_run=True)
    try:
        config.validate_for_live_run()
    except ValueError as e:
        raise SystemExit(f"[export] {e}")

    try:
        report = ReportJob(config).compute_report()
    except ReportError as e:
        raise SystemExit(f"[export] {e}")

    detail_path, summary_path = save_report_to_csv(report, args.out_dir)
    print(f"[export] {len(report.detail_rows)} projects")
    print(f"[export] Wrote {detail_path}")
    print(f"[export] Wrote {summary_path}")


# --- Main --------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Booked hours report - aggregate task hours and publish them "
            "to Google Sheets."
        )
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # run
    run_p = subparsers.add_parser(
        "run",
        help="Run the report once.",
    )
    run_p.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute and log the tables without writing to Google Sheets.",
    )
    run_p.set_defaults(func=cmd_run)

    # schedule
    sched_p = subparsers.add_parser(
        "schedule",
        help="Run now and then once a day.",
    )
    sched_p.add_argument(
        "--at",
        default=None,
        help="Local time of the daily run, HH:MM (default: SCHEDULE_TIME or 17:00).",
    )
    sched_p.add_argument(
        "--no-initial-run",
        action="store_true",
        help="Do not run immediately at start-up.",
    )
    sched_p.add_argument(
        "--dry-run",
        action="store_true",
        help="Never write to Google Sheets.",
    )
    sched_p.set_defaults(func=cmd_schedule)

    # export
    exp_p = subparsers.add_parser(
        "export",
        help="Write the report to local CSV files.",
    )
    exp_p.add_argument(
        "out_dir",
        help="Directory for detail.csv and summary.csv.",
    )
    exp_p.set_defaults(func=cmd_export)

    return parser


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
