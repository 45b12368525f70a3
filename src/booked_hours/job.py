"""
Run boundary and scheduling for the booked-hours report.

A run fetches every task record, rebuilds both tables and replaces the
sheet contents. Errors never escape a run: they are logged and recorded
in the returned RunStatus so the process stays up for the next trigger.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, ContextManager, List, Optional, Tuple

from .config import Config
from .data_io import open_record_source, open_workbook
from .errors import ReportError
from .reconcile import DryRunWorkbook, TabularWorkbook, publish_report
from .report_model import build_report
from .schema import HoursReport

logger = logging.getLogger(__name__)

SourceOpener = Callable[[Config], ContextManager[Any]]
WorkbookOpener = Callable[[Config], TabularWorkbook]


@dataclass
class RunStatus:
    started_at: datetime
    finished_at: Optional[datetime] = None
    success: bool = False
    dry_run: bool = False
    projects: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "success": self.success,
            "dry_run": self.dry_run,
            "projects": self.projects,
            "errors": list(self.errors),
        }


class ReportJob:
    """
    Runs the report with an explicit Config.

    `source_opener` and `workbook_opener` default to the MongoDB and
    Google Sheets adapters. Overlapping triggers are skipped, not queued.
    """

    def __init__(
        self,
        config: Config,
        *,
        source_opener: SourceOpener = open_record_source,
        workbook_opener: WorkbookOpener = open_workbook,
    ) -> None:
        self.config = config
        self.source_opener = source_opener
        self.workbook_opener = workbook_opener
        self.last_status: Optional[RunStatus] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def compute_report(self) -> HoursReport:
        """Fetch all records and build the tables; the source is closed on return."""
        with self.source_opener(self.config) as source:
            records = source.fetch_records()
        return build_report(records, self.config.internal_domain_suffixes)

    def run_once(self) -> Optional[RunStatus]:
        """
        Execute one full run. Returns None if another run is in flight.
        """
        if not self._lock.acquire(blocking=False):
            logger.warning("Previous run still in progress - skipping this trigger")
            return None
        try:
            status = self._run()
            self.last_status = status
            return status
        finally:
            self._lock.release()

    def _run(self) -> RunStatus:
        cfg = self.config
        status = RunStatus(started_at=datetime.now(), dry_run=cfg.dry_run)
        logger.info(
            "Starting data fetch and sheet update at %s",
            status.started_at.isoformat(),
        )

        try:
            report = self.compute_report()
            status.projects = len(report.detail_rows)
            logger.info(
                "Computed %s projects across %s assignee columns",
                status.projects,
                len(report.schema) - 2,
            )

            if cfg.dry_run:
                logger.info("DRY_RUN enabled - not writing to Google Sheets.")
                workbook: TabularWorkbook = DryRunWorkbook()
            else:
                workbook = self.workbook_opener(cfg)

            result = publish_report(
                report,
                workbook,
                detail_title=cfg.detail_tab_title,
                summary_title=cfg.summary_tab_title,
                batch_size=cfg.batch_size,
            )
            status.errors.extend(o.error for o in result.outcomes if o.error)
            status.success = result.ok
        except ReportError as exc:
            logger.error("Report run failed: %s", exc)
            status.errors.append(str(exc))
        except Exception as exc:
            logger.exception("Unexpected error during report run")
            status.errors.append(f"{type(exc).__name__}: {exc}")
        finally:
            status.finished_at = datetime.now()

        if status.success:
            logger.info("Report run finished successfully")
        else:
            logger.error(
                "Report run finished with errors: %s", "; ".join(status.errors)
            )
        return status


# --- Scheduling --------------------------------------------------------------


def parse_time_of_day(value: str) -> Tuple[int, int]:
    """Parse "HH:MM" into (hour, minute)."""
    try:
        hour_text, minute_text = value.strip().split(":")
        hour, minute = int(hour_text), int(minute_text)
    except ValueError:
        raise ValueError(f"Expected HH:MM, got {value!r}") from None
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Time of day out of range: {value!r}")
    return hour, minute


def seconds_until(now: datetime, at: str) -> float:
    """Seconds from `now` until the next occurrence of local time `at`."""
    hour, minute = parse_time_of_day(at)
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


def run_scheduled(
    job: ReportJob,
    *,
    at: Optional[str] = None,
    run_on_start: bool = True,
    stop_event: Optional[threading.Event] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> None:
    """
    Run once immediately (unless disabled), then daily at `at` (HH:MM).

    Blocks until `stop_event` is set.
    """
    at = at or job.config.schedule_time
    parse_time_of_day(at)
    stop_event = stop_event or threading.Event()

    logger.info("Scheduler set up: daily at %s", at)
    if run_on_start and not stop_event.is_set():
        logger.info("Starting first run on start-up")
        job.run_once()

    while not stop_event.is_set():
        wait = seconds_until(clock(), at)
        logger.info("Next run in %.0f seconds", wait)
        if stop_event.wait(timeout=wait):
            break
        job.run_once()
