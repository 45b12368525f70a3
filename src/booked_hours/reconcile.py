"""
Replace the contents of the report sheets with freshly computed tables.

Per sheet the protocol is:
1. create the sheet if it is missing (summary only)
2. grow the column count to the header width (never shrink)
3. clear
4. write the header row
5. append the rows in fixed-size batches, in order

There is no rollback: a failure mid-way leaves the sheet with a header
and partial data until the next successful run overwrites it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Protocol, Sequence

from .errors import RemoteWriteError
from .schema import HoursReport

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500
PREVIEW_ROWS = 10


class TabularResource(Protocol):
    """One sheet of the remote store."""

    title: str

    def current_column_count(self) -> int: ...

    def resize(self, columns: int) -> None: ...

    def clear(self) -> None: ...

    def set_header(self, names: Sequence[str]) -> None: ...

    def append_rows(self, batch: Sequence[Sequence[Any]]) -> None: ...


class TabularWorkbook(Protocol):
    """The spreadsheet holding the report sheets."""

    def get(self, name: str) -> Optional[TabularResource]: ...

    def create(self, name: str) -> TabularResource: ...


@dataclass
class ResourceOutcome:
    resource: str
    rows_written: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PublishResult:
    outcomes: List[ResourceOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)


def iter_batches(rows: Sequence[Any], batch_size: int) -> Iterator[Sequence[Any]]:
    """Yield consecutive slices of at most `batch_size` rows."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    for start in range(0, len(rows), batch_size):
        yield rows[start:start + batch_size]


def _step(resource: str, step: str, func, *args):
    try:
        return func(*args)
    except Exception as exc:
        logger.error("[%s] %s failed: %s", resource, step, exc)
        raise RemoteWriteError(resource, step, str(exc)) from exc


def reconcile_resource(
    workbook: TabularWorkbook,
    name: str,
    header: Sequence[str],
    rows: Sequence[Sequence[Any]],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    create_if_missing: bool = False,
) -> int:
    """
    Overwrite sheet `name` with `header` + `rows`.

    Returns the number of data rows written.

    Raises:
        RemoteWriteError: when the sheet is missing and may not be created,
            or when any store call fails. Remaining steps are skipped.
    """
    sheet = _step(name, "lookup", workbook.get, name)
    if sheet is None:
        if not create_if_missing:
            raise RemoteWriteError(name, "lookup", "sheet does not exist")
        logger.info("Sheet '%s' not found - creating it", name)
        sheet = _step(name, "create", workbook.create, name)

    current = _step(name, "column count", sheet.current_column_count)
    logger.info(
        "Sheet '%s' has %s columns, header needs %s", name, current, len(header)
    )
    if len(header) > current:
        logger.info("Resizing '%s' from %s to %s columns", name, current, len(header))
        _step(name, "resize", sheet.resize, len(header))

    _step(name, "clear", sheet.clear)
    _step(name, "set header", sheet.set_header, list(header))

    written = 0
    for number, batch in enumerate(iter_batches(rows, batch_size), start=1):
        values = [list(r) for r in batch]
        _step(name, f"append batch {number}", sheet.append_rows, values)
        written += len(batch)
        logger.debug("[%s] batch %s appended (%s rows so far)", name, number, written)

    logger.info("Sheet '%s' updated with %s rows", name, written)
    return written


def publish_report(
    report: HoursReport,
    workbook: TabularWorkbook,
    *,
    detail_title: str,
    summary_title: str,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> PublishResult:
    """
    Write the detail sheet and the summary sheet.

    The two writes are independent: a failure on one is recorded and the
    other is still attempted. The detail sheet must already exist; the
    summary sheet is created when missing.
    """
    targets = (
        (detail_title, report.schema, report.detail_values(), False),
        (summary_title, report.summary_schema, report.summary_values(), True),
    )

    result = PublishResult()
    for title, header, rows, creatable in targets:
        try:
            written = reconcile_resource(
                workbook,
                title,
                header,
                rows,
                batch_size=batch_size,
                create_if_missing=creatable,
            )
        except RemoteWriteError as exc:
            result.outcomes.append(ResourceOutcome(resource=title, error=str(exc)))
        else:
            result.outcomes.append(
                ResourceOutcome(resource=title, rows_written=written)
            )
    return result


# --- Dry-run sink ------------------------------------------------------------


class DryRunSheet:
    """Sheet stand-in that logs and records every call instead of writing."""

    def __init__(self, title: str, columns: int = 26) -> None:
        self.title = title
        self.columns = columns
        self.header: List[str] = []
        self.rows: List[List[Any]] = []
        self.calls: List[str] = []

    def current_column_count(self) -> int:
        return self.columns

    def resize(self, columns: int) -> None:
        self.calls.append("resize")
        self.columns = columns

    def clear(self) -> None:
        self.calls.append("clear")
        self.header = []
        self.rows = []

    def set_header(self, names: Sequence[str]) -> None:
        self.calls.append("set_header")
        self.header = list(names)
        logger.info("DRY_RUN: '%s' headers: %s", self.title, self.header)

    def append_rows(self, batch: Sequence[Sequence[Any]]) -> None:
        self.calls.append("append_rows")
        if len(self.rows) < PREVIEW_ROWS:
            sample = [list(r) for r in batch[: PREVIEW_ROWS - len(self.rows)]]
            logger.info("DRY_RUN: '%s' sample rows: %s", self.title, sample)
        self.rows.extend(list(r) for r in batch)


class DryRunWorkbook:
    """
    In-memory workbook used when DRY_RUN is on.

    Every sheet lookup succeeds, so a dry run walks exactly the same steps
    as a live run against an existing spreadsheet.
    """

    def __init__(self) -> None:
        self.sheets = {}

    def get(self, name: str) -> DryRunSheet:
        if name not in self.sheets:
            self.sheets[name] = DryRunSheet(name)
        return self.sheets[name]

    def create(self, name: str) -> DryRunSheet:
        return self.get(name)
