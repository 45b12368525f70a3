from contextlib import contextmanager
from typing import Any, List, Optional

import pytest

from booked_hours.config import Config
from booked_hours.schema import TaskRecord


class RecordingSheet:
    """In-memory sheet that logs every call made by the reconciler."""

    def __init__(self, title: str, columns: int = 26, fail_on: Optional[str] = None):
        self.title = title
        self.columns = columns
        self.fail_on = fail_on
        self.calls: List[tuple] = []
        self.header: List[str] = []
        self.rows: List[List[Any]] = []

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_on == name:
            raise RuntimeError(f"{name} exploded")

    def current_column_count(self) -> int:
        return self.columns

    def resize(self, columns: int) -> None:
        self._record("resize", columns)
        self.columns = columns

    def clear(self) -> None:
        self._record("clear")
        self.header = []
        self.rows = []

    def set_header(self, names) -> None:
        self._record("set_header", list(names))
        self.header = list(names)

    def append_rows(self, batch) -> None:
        self._record("append_rows", len(batch))
        self.rows.extend(list(r) for r in batch)


class RecordingWorkbook:
    def __init__(self, *sheets: RecordingSheet):
        self.sheets = {s.title: s for s in sheets}
        self.created: List[str] = []

    def get(self, name):
        return self.sheets.get(name)

    def create(self, name):
        self.created.append(name)
        sheet = RecordingSheet(name)
        self.sheets[name] = sheet
        return sheet

    @property
    def mutations(self) -> int:
        return len(self.created) + sum(len(s.calls) for s in self.sheets.values())


class StaticSource:
    def __init__(self, records):
        self.records = list(records)

    def fetch_records(self):
        return list(self.records)


def static_source_opener(records, log: Optional[list] = None):
    @contextmanager
    def opener(config):
        if log is not None:
            log.append("open")
        try:
            yield StaticSource(records)
        finally:
            if log is not None:
                log.append("close")

    return opener


@pytest.fixture
def config():
    return Config(
        mongo_uri="mongodb://localhost:27017",
        mongo_db_name="tracking",
        google_file_id="file-id",
        internal_domain_suffixes=("@int.example",),
        batch_size=2,
    )


@pytest.fixture
def example_records():
    return [
        TaskRecord(project_id="1", assignee_identifier="x@int.example", hours=3),
        TaskRecord(project_id="1", assignee_identifier=None, hours=2),
        TaskRecord(project_id="2", assignee_identifier="y@ext.example", hours=5),
    ]
