"""
Data I/O for the booked-hours report.

Provides thin adapters to:
- Read task records from MongoDB (connection retried a few times)
- Open the target Google spreadsheet and expose its worksheets through
  the TabularWorkbook interface used by reconcile
- Save the computed tables to local CSV files

Dependencies:
- `pymongo` for the task collection.
- `gspread` + `google-auth` for Google Sheets.
"""

from __future__ import annotations

import csv
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import gspread
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from gspread.exceptions import WorksheetNotFound
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .config import Config
from .errors import ConnectivityError, RemoteWriteError
from .schema import HoursReport, TaskRecord

logger = logging.getLogger(__name__)

MONGO_SERVER_SELECTION_TIMEOUT_MS = 10_000

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
NEW_SHEET_ROWS = 1000
NEW_SHEET_COLS = 26


# --- MongoDB helpers ---------------------------------------------------------


def _hours(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if hasattr(value, "to_decimal"):  # bson Decimal128
        value = value.to_decimal()
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def record_from_document(doc: Dict[str, Any], config: Config) -> Optional[TaskRecord]:
    """
    Map a task document to a TaskRecord.

    Returns None when the document has no project id. Missing or
    non-numeric hours count as 0.
    """
    project_id = doc.get(config.project_field)
    if project_id is None or str(project_id).strip() == "":
        return None

    name = doc.get(config.project_name_field)
    assignee = doc.get(config.assignee_field)
    return TaskRecord(
        project_id=str(project_id),
        project_name=str(name) if name is not None else None,
        assignee_identifier=str(assignee) if assignee is not None else None,
        hours=_hours(doc.get(config.hours_field)),
    )


def connect_mongo(
    config: Config,
    client_factory: Callable[..., Any] = MongoClient,
):
    """
    Connect to MongoDB, retrying up to `config.mongo_connect_attempts` times.

    Each attempt pings the server so a bad URI or unreachable host fails
    here rather than on the first query.

    Raises:
        ConnectivityError: when every attempt failed.
    """
    last_error: Optional[Exception] = None
    for attempt in range(1, config.mongo_connect_attempts + 1):
        client = None
        try:
            client = client_factory(
                config.mongo_uri,
                serverSelectionTimeoutMS=MONGO_SERVER_SELECTION_TIMEOUT_MS,
            )
            client.admin.command("ping")
            logger.info("Connected to MongoDB")
            return client
        except PyMongoError as exc:
            last_error = exc
            logger.error("MongoDB connection attempt %s failed: %s", attempt, exc)
            if client is not None:
                client.close()

    raise ConnectivityError(
        f"MongoDB unreachable after {config.mongo_connect_attempts} attempts: "
        f"{last_error}"
    )


class MongoRecordSource:
    """Bulk reader over the task collection."""

    def __init__(self, collection, config: Config) -> None:
        self.collection = collection
        self.config = config

    def fetch_records(self) -> List[TaskRecord]:
        cfg = self.config
        projection = {
            "_id": 0,
            cfg.project_field: 1,
            cfg.project_name_field: 1,
            cfg.assignee_field: 1,
            cfg.hours_field: 1,
        }

        records: List[TaskRecord] = []
        skipped = 0
        for doc in self.collection.find({}, projection):
            record = record_from_document(doc, cfg)
            if record is None:
                skipped += 1
                continue
            records.append(record)

        if skipped:
            logger.warning(
                "Skipped %s task documents without %s", skipped, cfg.project_field
            )
        logger.info("Fetched %s task records", len(records))
        return records


@contextmanager
def open_record_source(
    config: Config,
    client_factory: Callable[..., Any] = MongoClient,
) -> Iterator[MongoRecordSource]:
    """
    Connected record source; the client is closed on every exit path.
    """
    client = connect_mongo(config, client_factory=client_factory)
    try:
        collection = client[config.mongo_db_name][config.mongo_collection]
        yield MongoRecordSource(collection, config)
    finally:
        client.close()
        logger.info("MongoDB connection closed")


# --- Google Sheets helpers ---------------------------------------------------


def _build_credentials(config: Config) -> Credentials:
    if config.google_service_account_email and config.google_private_key:
        info = {
            "type": "service_account",
            "client_email": config.google_service_account_email,
            "private_key": config.google_private_key,
            "token_uri": TOKEN_URI,
        }
        return Credentials.from_service_account_info(info, scopes=SCOPES)

    if config.google_credentials_file:
        return Credentials.from_service_account_file(
            config.google_credentials_file, scopes=SCOPES
        )

    raise ValueError(
        "Google service account is not configured. Set "
        "GOOGLE_SERVICE_ACCOUNT_EMAIL + GOOGLE_PRIVATE_KEY or "
        "GOOGLE_APPLICATION_CREDENTIALS."
    )


class SheetResource:
    """gspread worksheet exposed as a TabularResource."""

    def __init__(self, worksheet: gspread.Worksheet) -> None:
        self.worksheet = worksheet
        self.title = worksheet.title

    def current_column_count(self) -> int:
        return int(self.worksheet.col_count or 0)

    def resize(self, columns: int) -> None:
        self.worksheet.resize(rows=self.worksheet.row_count, cols=columns)

    def clear(self) -> None:
        self.worksheet.clear()

    def set_header(self, names: Sequence[str]) -> None:
        self.worksheet.update(values=[list(names)], range_name="A1")

    def append_rows(self, batch: Sequence[Sequence[Any]]) -> None:
        # USER_ENTERED so a leading apostrophe keeps ids as text.
        self.worksheet.append_rows(
            [list(row) for row in batch],
            value_input_option="USER_ENTERED",
            table_range="A1",
        )


class SheetWorkbook:
    """gspread spreadsheet exposed as a TabularWorkbook."""

    def __init__(self, spreadsheet: gspread.Spreadsheet) -> None:
        self.spreadsheet = spreadsheet

    def get(self, name: str) -> Optional[SheetResource]:
        try:
            return SheetResource(self.spreadsheet.worksheet(name))
        except WorksheetNotFound:
            return None

    def create(self, name: str) -> SheetResource:
        worksheet = self.spreadsheet.add_worksheet(
            title=name, rows=NEW_SHEET_ROWS, cols=NEW_SHEET_COLS
        )
        return SheetResource(worksheet)


def open_workbook(config: Config) -> SheetWorkbook:
    """
    Authenticate with the service account and open the report spreadsheet.

    Raises:
        RemoteWriteError: when authentication or opening the file fails.
    """
    try:
        client = gspread.authorize(_build_credentials(config))
        spreadsheet = client.open_by_key(config.google_file_id)
    except (ValueError, GoogleAuthError, gspread.exceptions.GSpreadException) as exc:
        raise RemoteWriteError("spreadsheet", "open", str(exc)) from exc

    logger.info("Using spreadsheet: %s", spreadsheet.title)
    return SheetWorkbook(spreadsheet)


# --- Local CSV helpers -------------------------------------------------------


def _write_csv(path: Path, fieldnames: Sequence[str], rows) -> None:
    with open(path, mode="w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(fieldnames))
        writer.writeheader()
        for row in rows:
            writer.writerow({key: row.get(key) for key in fieldnames})


def save_report_to_csv(report: HoursReport, out_dir: str) -> Tuple[Path, Path]:
    """
    Save both tables as `detail.csv` and `summary.csv` in `out_dir`.

    Overwrites existing files. Returns the two paths.
    """
    directory = Path(out_dir)
    directory.mkdir(parents=True, exist_ok=True)

    detail_path = directory / "detail.csv"
    summary_path = directory / "summary.csv"
    _write_csv(detail_path, report.schema, report.detail_rows)
    _write_csv(summary_path, report.summary_schema, report.summary_rows)
    return detail_path, summary_path
