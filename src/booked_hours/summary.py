"""
Summary table: hours per project split into internal / external /
unassigned buckets, based on the assignee column names.
"""

from __future__ import annotations

import enum
import math
from typing import Dict, Iterable, List, Sequence

from .schema import IDENTIFIER_COLUMNS, PROJECT_ID_COLUMN, PROJECT_NAME_COLUMN, Row

# Spellings of "nobody assigned" seen in the task data over time.
UNASSIGNED_SPELLINGS = ("no assignee", "no assignee>", "<unassigned>", "<unassigned")


class Bucket(str, enum.Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    UNASSIGNED = "unassigned"


def classify_assignee(key: str, internal_suffixes: Iterable[str]) -> Bucket:
    """
    Classify an assignee column name.

    Comparison is case-insensitive on the trimmed key. Empty keys and
    keys containing an unassigned spelling are UNASSIGNED; keys ending
    with an internal domain suffix are INTERNAL; the rest are EXTERNAL.
    """
    k = (key or "").strip().lower()
    if not k or any(spelling in k for spelling in UNASSIGNED_SPELLINGS):
        return Bucket.UNASSIGNED
    suffixes = [s.strip().lower() for s in internal_suffixes if s.strip()]
    if any(k.endswith(suffix) for suffix in suffixes):
        return Bucket.INTERNAL
    return Bucket.EXTERNAL


def _as_hours(value: object) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0


def summarize_rows(
    detail_rows: Sequence[Row],
    schema: Sequence[str],
    internal_suffixes: Sequence[str],
) -> List[Row]:
    """
    One summary row per detail row, in the same order.

    Cells that are missing or not numeric count as 0. Buckets and the
    total are exact sums (math.fsum), so total_hours equals the sum of
    the row's hour cells.
    """
    buckets = {
        column: classify_assignee(column, internal_suffixes)
        for column in schema
        if column not in IDENTIFIER_COLUMNS
    }

    summary: List[Row] = []
    for row in detail_rows:
        values: Dict[Bucket, List[float]] = {bucket: [] for bucket in Bucket}
        for column, bucket in buckets.items():
            values[bucket].append(_as_hours(row.get(column)))

        internal = math.fsum(values[Bucket.INTERNAL])
        external = math.fsum(values[Bucket.EXTERNAL])
        unassigned = math.fsum(values[Bucket.UNASSIGNED])
        total = math.fsum(v for bucket_values in values.values() for v in bucket_values)
        summary.append(
            {
                PROJECT_ID_COLUMN: row.get(PROJECT_ID_COLUMN, ""),
                PROJECT_NAME_COLUMN: row.get(PROJECT_NAME_COLUMN, ""),
                "internal": internal,
                "external": external,
                "unassigned": unassigned,
                "total_hours": total,
            }
        )
    return summary
