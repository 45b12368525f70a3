"""
Data schemas for the booked-hours report.

Defines:
- TaskRecord: a single time-tracking record read from the task collection
- ProjectHoursAggregate: summed hours per assignee for one project
- HoursReport: the computed detail + summary tables for one run
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


PROJECT_ID_COLUMN = "project_id"
PROJECT_NAME_COLUMN = "project_name"
IDENTIFIER_COLUMNS = (PROJECT_ID_COLUMN, PROJECT_NAME_COLUMN)

# Placeholder assignee key for records without an assignee.
UNASSIGNED_KEY = "<unassigned>"

SUMMARY_COLUMNS = [
    PROJECT_ID_COLUMN,
    PROJECT_NAME_COLUMN,
    "internal",
    "external",
    "unassigned",
    "total_hours",
]

Row = Dict[str, Any]


@dataclass(frozen=True)
class TaskRecord:
    """
    One task as delivered by the upstream source.

    Hours are in hours; `assignee_identifier` is usually an email and is
    None when nobody was assigned.
    """

    project_id: str
    project_name: Optional[str] = None
    assignee_identifier: Optional[str] = None
    hours: float = 0.0


@dataclass
class ProjectHoursAggregate:
    project_id: str
    project_name: str = ""
    hours_by_assignee: Dict[str, float] = field(default_factory=dict)


@dataclass
class HoursReport:
    """
    Result of steps aggregate -> schema -> rows -> summary.

    `summary_rows[i]` always describes the same project as `detail_rows[i]`.
    """

    schema: List[str]
    detail_rows: List[Row]
    summary_rows: List[Row]

    @property
    def summary_schema(self) -> List[str]:
        return list(SUMMARY_COLUMNS)

    def detail_values(self) -> List[List[Any]]:
        """Detail rows as value lists in schema order."""
        return [[row[col] for col in self.schema] for row in self.detail_rows]

    def summary_values(self) -> List[List[Any]]:
        """Summary rows as value lists in summary column order."""
        return [[row[col] for col in SUMMARY_COLUMNS] for row in self.summary_rows]
