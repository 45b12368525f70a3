import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime

import pytest

from booked_hours.errors import ConnectivityError
from booked_hours.job import ReportJob, parse_time_of_day, run_scheduled, seconds_until
from conftest import RecordingSheet, RecordingWorkbook, static_source_opener


def _job(config, records, workbook, log=None):
    return ReportJob(
        config,
        source_opener=static_source_opener(records, log),
        workbook_opener=lambda cfg: workbook,
    )


def test_run_writes_both_sheets(config, example_records):
    detail = RecordingSheet(config.detail_tab_title)
    workbook = RecordingWorkbook(detail)
    log = []

    status = _job(config, example_records, workbook, log).run_once()

    assert status.success
    assert status.projects == 2
    assert status.errors == []
    assert log == ["open", "close"]
    assert detail.rows[0][0] == "'1"
    assert workbook.sheets[config.summary_tab_title].rows[0][2:] == [3, 0, 2, 5]


def test_empty_source_fails_without_remote_calls(config):
    workbook = RecordingWorkbook(RecordingSheet(config.detail_tab_title))
    log = []

    status = _job(config, [], workbook, log).run_once()

    assert not status.success
    assert "No task records" in status.errors[0]
    assert workbook.mutations == 0
    assert log == ["open", "close"]


def test_dry_run_matches_live_tables_with_zero_remote_calls(config, example_records):
    live = RecordingWorkbook(RecordingSheet(config.detail_tab_title))
    _job(config, example_records, live).run_once()

    untouched = RecordingWorkbook(RecordingSheet(config.detail_tab_title))
    opened = []

    def opener(cfg):
        opened.append(cfg)
        return untouched

    dry_job = ReportJob(
        replace(config, dry_run=True),
        source_opener=static_source_opener(example_records),
        workbook_opener=opener,
    )
    status = dry_job.run_once()

    assert status.success and status.dry_run
    assert opened == []
    assert untouched.mutations == 0
    live_rows = live.sheets[config.detail_tab_title].rows
    assert dry_job.compute_report().detail_values() == live_rows


def test_connectivity_error_is_contained(config):
    @contextmanager
    def failing_opener(cfg):
        raise ConnectivityError("MongoDB unreachable after 3 attempts")
        yield  # pragma: no cover

    job = ReportJob(
        config, source_opener=failing_opener, workbook_opener=lambda cfg: None
    )
    status = job.run_once()

    assert not status.success
    assert status.errors == ["MongoDB unreachable after 3 attempts"]
    assert job.last_status is status


def test_source_closed_when_fetch_raises(config):
    log = []

    class Exploding:
        def fetch_records(self):
            raise RuntimeError("cursor died")

    @contextmanager
    def opener(cfg):
        log.append("open")
        try:
            yield Exploding()
        finally:
            log.append("close")

    job = ReportJob(config, source_opener=opener, workbook_opener=lambda cfg: None)
    status = job.run_once()

    assert not status.success
    assert log == ["open", "close"]
    assert "RuntimeError" in status.errors[0]


def test_one_failed_sheet_fails_the_run(config, example_records):
    workbook = RecordingWorkbook(
        RecordingSheet(config.detail_tab_title, fail_on="clear")
    )

    status = _job(config, example_records, workbook).run_once()

    assert not status.success
    assert len(status.errors) == 1
    assert workbook.sheets[config.summary_tab_title].rows


def test_overlapping_trigger_is_skipped(config, example_records):
    entered = threading.Event()
    release = threading.Event()

    @contextmanager
    def slow_opener(cfg):
        entered.set()
        release.wait(timeout=5)
        yield static_source_opener(example_records)(cfg).__enter__()

    job = ReportJob(
        config,
        source_opener=slow_opener,
        workbook_opener=lambda cfg: RecordingWorkbook(
            RecordingSheet(config.detail_tab_title)
        ),
    )
    worker = threading.Thread(target=job.run_once)
    worker.start()
    assert entered.wait(timeout=5)

    assert job.running
    assert job.run_once() is None

    release.set()
    worker.join(timeout=5)
    assert not job.running
    assert job.last_status.success


@pytest.mark.parametrize(
    "now, at, expected",
    [
        (datetime(2024, 5, 1, 9, 0, 0), "17:00", 8 * 3600),
        (datetime(2024, 5, 1, 17, 0, 0), "17:00", 24 * 3600),
        (datetime(2024, 5, 1, 18, 30, 0), "17:00", 22.5 * 3600),
        (datetime(2024, 5, 1, 16, 59, 30), "17:00", 30),
    ],
)
def test_seconds_until(now, at, expected):
    assert seconds_until(now, at) == expected


@pytest.mark.parametrize("value", ["25:00", "7", "ab:cd", "12:60"])
def test_parse_time_of_day_rejects_bad_values(value):
    with pytest.raises(ValueError):
        parse_time_of_day(value)


def test_run_scheduled_runs_eagerly_then_stops(config):
    stop = threading.Event()
    runs = []

    class FakeJob:
        def __init__(self):
            self.config = config

        def run_once(self):
            runs.append(1)
            stop.set()

    run_scheduled(FakeJob(), at="17:00", stop_event=stop)

    assert runs == [1]


def test_run_scheduled_fires_at_the_scheduled_time(config):
    stop = threading.Event()
    runs = []

    class FakeJob:
        def __init__(self):
            self.config = config

        def run_once(self):
            runs.append(1)
            if len(runs) == 2:
                stop.set()

    # One second before the daily slot, so each wait is short.
    run_scheduled(
        FakeJob(),
        at="17:00",
        run_on_start=False,
        stop_event=stop,
        clock=lambda: datetime(2024, 5, 1, 16, 59, 59, 950000),
    )

    assert runs == [1, 1]
