import pytest

from booked_hours.errors import RemoteWriteError
from booked_hours.reconcile import (
    DryRunWorkbook,
    iter_batches,
    publish_report,
    reconcile_resource,
)
from booked_hours.report_model import build_report
from conftest import RecordingSheet, RecordingWorkbook


def test_iter_batches_splits_in_order():
    assert list(iter_batches(list(range(7)), 3)) == [[0, 1, 2], [3, 4, 5], [6]]
    assert list(iter_batches([], 3)) == []


def test_iter_batches_rejects_non_positive_size():
    with pytest.raises(ValueError):
        list(iter_batches([1], 0))


def test_protocol_order_with_resize():
    sheet = RecordingSheet("detail", columns=2)
    workbook = RecordingWorkbook(sheet)
    rows = [[1, "a", 1], [2, "b", 2], [3, "c", 3]]

    written = reconcile_resource(
        workbook, "detail", ["id", "name", "x"], rows, batch_size=2
    )

    assert written == 3
    assert sheet.calls == [
        ("resize", 3),
        ("clear",),
        ("set_header", ["id", "name", "x"]),
        ("append_rows", 2),
        ("append_rows", 1),
    ]
    assert sheet.rows == rows


def test_never_shrinks_columns():
    sheet = RecordingSheet("detail", columns=40)
    reconcile_resource(RecordingWorkbook(sheet), "detail", ["a", "b"], [[1, 2]])

    assert sheet.columns == 40
    assert [c[0] for c in sheet.calls] == ["clear", "set_header", "append_rows"]


def test_missing_sheet_without_create_fails_before_any_write():
    workbook = RecordingWorkbook()

    with pytest.raises(RemoteWriteError) as excinfo:
        reconcile_resource(workbook, "detail", ["a"], [[1]], create_if_missing=False)

    assert excinfo.value.resource == "detail"
    assert workbook.mutations == 0


def test_missing_sheet_is_created_when_allowed():
    workbook = RecordingWorkbook()

    reconcile_resource(workbook, "Summary", ["a"], [[1]], create_if_missing=True)

    assert workbook.created == ["Summary"]
    assert workbook.sheets["Summary"].header == ["a"]


def test_failure_aborts_remaining_steps():
    sheet = RecordingSheet("detail", fail_on="set_header")

    with pytest.raises(RemoteWriteError) as excinfo:
        reconcile_resource(RecordingWorkbook(sheet), "detail", ["a"], [[1]])

    assert excinfo.value.step == "set header"
    assert [c[0] for c in sheet.calls] == ["clear", "set_header"]


def test_publish_writes_aligned_tables(example_records):
    report = build_report(example_records, ["@int.example"])
    detail = RecordingSheet("hours")
    workbook = RecordingWorkbook(detail)

    result = publish_report(
        report, workbook, detail_title="hours", summary_title="Summary", batch_size=1
    )

    assert result.ok
    summary = workbook.sheets["Summary"]
    assert detail.header == report.schema
    assert summary.header == report.summary_schema
    assert [r[0] for r in detail.rows] == [r[0] for r in summary.rows] == ["'1", "'2"]


def test_publish_outcomes_are_independent(example_records):
    report = build_report(example_records, ["@int.example"])
    detail = RecordingSheet("hours", fail_on="append_rows")
    summary = RecordingSheet("Summary")

    result = publish_report(
        report,
        RecordingWorkbook(detail, summary),
        detail_title="hours",
        summary_title="Summary",
    )

    assert not result.ok
    assert [o.ok for o in result.outcomes] == [False, True]
    assert len(summary.rows) == 2


def test_dry_run_workbook_records_tables(example_records):
    report = build_report(example_records, ["@int.example"])
    workbook = DryRunWorkbook()

    result = publish_report(
        report,
        workbook,
        detail_title="hours",
        summary_title="Summary",
        batch_size=500,
    )

    assert result.ok
    assert workbook.sheets["hours"].header == report.schema
    assert workbook.sheets["hours"].rows == report.detail_values()
    assert workbook.sheets["Summary"].rows == report.summary_values()
