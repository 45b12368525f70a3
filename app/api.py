"""
FastAPI app for the booked-hours report.

Endpoints:
- GET  /health   last sync status, for health checks
- POST /run      trigger a report run now
- POST /preview  compute the tables for posted records (no storage access)

Run locally with:
    uvicorn app.api:app
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# --- Make src/ importable ----------------------------------------------------

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from booked_hours.config import Config
from booked_hours.errors import NoDataError
from booked_hours.job import ReportJob
from booked_hours.report_model import build_report
from booked_hours.schema import TaskRecord


# --- Request / Response schemas ----------------------------------------------


class TaskRecordPayload(BaseModel):
    """
    One task record for /preview.

    `assignee_identifier` left out (or null) means unassigned.
    """

    project_id: str
    project_name: Optional[str] = None
    assignee_identifier: Optional[str] = None
    hours: float = 0.0


class RunStatusResponse(BaseModel):
    started_at: str
    finished_at: Optional[str]
    success: bool
    dry_run: bool
    projects: int
    errors: List[str]


class HealthResponse(BaseModel):
    status: str
    running: bool
    last_run: Optional[RunStatusResponse]


class PreviewResponse(BaseModel):
    headers: List[str]
    rows: List[Dict[str, Any]]
    summary_headers: List[str]
    summary: List[Dict[str, Any]]


# --- App ---------------------------------------------------------------------


def create_app(job: ReportJob) -> FastAPI:
    app = FastAPI(title="Booked Hours Report API")

    def _status(status) -> Optional[RunStatusResponse]:
        if status is None:
            return None
        return RunStatusResponse(**status.to_dict())

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            running=job.running,
            last_run=_status(job.last_status),
        )

    @app.post("/run", response_model=RunStatusResponse)
    def run() -> RunStatusResponse:
        """
        Run the report synchronously. 409 if a run is already in flight.
        """
        status = job.run_once()
        if status is None:
            raise HTTPException(
                status_code=409, detail="A report run is already in progress."
            )
        return _status(status)

    @app.post("/preview", response_model=PreviewResponse)
    def preview(payload: List[TaskRecordPayload]) -> PreviewResponse:
        """
        Build both tables from the posted records.

        Body example:
        [
          {"project_id": "1", "assignee_identifier": "x@grips.io", "hours": 3},
          {"project_id": "1", "hours": 2}
        ]
        """
        records = [TaskRecord(**item.model_dump()) for item in payload]
        try:
            report = build_report(records, job.config.internal_domain_suffixes)
        except NoDataError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return PreviewResponse(
            headers=report.schema,
            rows=report.detail_rows,
            summary_headers=report.summary_schema,
            summary=report.summary_rows,
        )

    return app


load_dotenv()
app = create_app(ReportJob(Config.from_env()))


# Convenience for local dev:
# uvicorn app.api:app --reload
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.api:app", host="0.0.0.0", port=8000, reload=True)
