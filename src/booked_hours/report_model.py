"""
Pure table logic for the booked-hours report.

No I/O, no MongoDB, no Sheets. Just:
- Grouping task records into per-project assignee -> hours maps
- Deriving the detail header from the set of assignees
- Rendering complete, sorted detail rows
- Assembling the full HoursReport (detail + summary)
"""

from __future__ import annotations

import math
import re
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from .errors import NoDataError, SchemaInconsistencyError
from .schema import (
    IDENTIFIER_COLUMNS,
    PROJECT_ID_COLUMN,
    PROJECT_NAME_COLUMN,
    UNASSIGNED_KEY,
    HoursReport,
    ProjectHoursAggregate,
    Row,
    TaskRecord,
)
from .summary import summarize_rows

TEXT_MARKER = "'"
ASSIGNEE_PREFIX = "assignee:"

_DIGITS = re.compile(r"^\d+$")
_CHUNKS = re.compile(r"(\d+)")


def assignee_key(record: TaskRecord) -> str:
    """
    Column key for a record's assignee: the identifier verbatim, or the
    unassigned placeholder when there is none. Identifiers that equal an
    identifier column name are prefixed so they get their own column.
    """
    if record.assignee_identifier is None:
        return UNASSIGNED_KEY
    if record.assignee_identifier in IDENTIFIER_COLUMNS:
        return ASSIGNEE_PREFIX + record.assignee_identifier
    return record.assignee_identifier


def aggregate_records(
    records: Iterable[TaskRecord],
) -> Dict[str, ProjectHoursAggregate]:
    """
    Group records by project and sum their hours per assignee key.

    The first non-empty project name seen for a project wins. Sums use
    math.fsum over every collected value, so a cell does not depend on
    the order in which the records arrived.

    Raises:
        NoDataError: if `records` is empty.
    """
    collected: Dict[str, Dict[str, List[float]]] = {}
    names: Dict[str, str] = {}

    for record in records:
        per_assignee = collected.setdefault(record.project_id, {})
        per_assignee.setdefault(assignee_key(record), []).append(record.hours)
        if record.project_name and not names.get(record.project_id):
            names[record.project_id] = record.project_name

    if not collected:
        raise NoDataError("No task records found for the report.")

    return {
        project_id: ProjectHoursAggregate(
            project_id=project_id,
            project_name=names.get(project_id, ""),
            hours_by_assignee={
                key: math.fsum(values) for key, values in per_assignee.items()
            },
        )
        for project_id, per_assignee in collected.items()
    }


def build_schema(aggregates: Mapping[str, ProjectHoursAggregate]) -> List[str]:
    """
    Detail header: identifier columns, then every assignee key sorted
    case-insensitively.
    """
    keys = set()
    for aggregate in aggregates.values():
        keys.update(aggregate.hours_by_assignee)
    ordered = sorted(keys, key=lambda k: (k.casefold(), k))
    return [PROJECT_ID_COLUMN, PROJECT_NAME_COLUMN, *ordered]


def format_project_id(project_id: object) -> str:
    """
    Mark ids that Sheets would turn into numbers so they stay literal text.

    Purely numeric ids and ids ending in "0" get a leading apostrophe.
    """
    if project_id is None:
        return ""
    text = str(project_id)
    if _DIGITS.match(text) or text.endswith("0"):
        return text if text.startswith(TEXT_MARKER) else TEXT_MARKER + text
    return text


def unmark(project_id: str) -> str:
    if project_id.startswith(TEXT_MARKER):
        return project_id[len(TEXT_MARKER):]
    return project_id


def project_sort_key(
    project_id: str,
) -> Tuple[Tuple[Tuple[int, object], ...], str]:
    """
    Natural sort key on the unmarked id.

    Digit runs compare by integer value (so ids of any length order
    numerically), text runs compare case-insensitively, and the raw id
    breaks remaining ties.
    """
    raw = unmark(project_id)
    parts = []
    for chunk in _CHUNKS.split(raw):
        if not chunk:
            continue
        if chunk.isdecimal():
            parts.append((0, int(chunk)))
        else:
            parts.append((1, chunk.casefold()))
    return tuple(parts), raw


def normalize_rows(
    aggregates: Mapping[str, ProjectHoursAggregate],
    schema: Sequence[str],
) -> List[Row]:
    """
    Render one complete row per project, sorted by project id.

    Hour columns a project has no entry for are 0.
    """
    columns = set(schema)
    if len(columns) != len(schema) or tuple(schema[:2]) != IDENTIFIER_COLUMNS:
        raise SchemaInconsistencyError(f"Malformed schema: {list(schema)}")
    rows: List[Row] = []

    for aggregate in aggregates.values():
        unknown = set(aggregate.hours_by_assignee) - columns
        unknown.update(set(aggregate.hours_by_assignee) & set(IDENTIFIER_COLUMNS))
        if unknown:
            raise SchemaInconsistencyError(
                f"Project {aggregate.project_id!r} has columns outside the "
                f"schema: {sorted(unknown)}"
            )

        row: Row = {
            PROJECT_ID_COLUMN: format_project_id(aggregate.project_id),
            PROJECT_NAME_COLUMN: aggregate.project_name or "",
        }
        for column in schema[2:]:
            row[column] = aggregate.hours_by_assignee.get(column, 0)
        rows.append(row)

    rows.sort(key=lambda r: project_sort_key(r[PROJECT_ID_COLUMN]))
    return rows


def build_report(
    records: Iterable[TaskRecord],
    internal_suffixes: Sequence[str],
) -> HoursReport:
    """
    Compute both report tables from raw records.

    The summary is derived from the already sorted detail rows, so both
    tables list projects in the same order.
    """
    aggregates = aggregate_records(records)
    schema = build_schema(aggregates)
    detail_rows = normalize_rows(aggregates, schema)
    summary_rows = summarize_rows(detail_rows, schema, internal_suffixes)
    return HoursReport(
        schema=schema,
        detail_rows=detail_rows,
        summary_rows=summary_rows,
    )
