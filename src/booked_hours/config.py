"""
Configuration module for the booked-hours report.

Single source of truth for:
- MongoDB connection settings and task field names
- Google Sheets target (file id, tab titles, service account)
- Report policy (batch size, dry-run toggle, internal mail domains, schedule)

All values can be overridden via environment variables (a local `.env`
file is loaded by the entry points).
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Optional, Tuple


DEFAULT_INTERNAL_DOMAINS: Tuple[str, ...] = ("@grips.io", "@retired.grips.io")


def _get_env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    items = tuple(part.strip() for part in value.split(",") if part.strip())
    return items or default


def _unescape_private_key(raw: Optional[str]) -> Optional[str]:
    # Keys pasted into .env files usually carry literal "\n" sequences.
    if raw and "\\n" in raw:
        return raw.replace("\\n", "\n")
    return raw


@dataclass
class Config:
    """
    Runtime configuration for one report run.

    Defaults match the production setup; construct Config(...) directly
    in tests or scripts to override anything.
    """

    # MongoDB (upstream task records)
    mongo_uri: Optional[str] = None
    mongo_db_name: Optional[str] = None
    mongo_collection: str = "tasks"
    mongo_connect_attempts: int = 3

    # Task document field names
    project_field: str = "project_main_gid"
    project_name_field: str = "project_main_name"
    assignee_field: str = "assignee_mail"
    hours_field: str = "hours_completed_self"

    # Google Sheets target
    google_file_id: Optional[str] = None
    google_service_account_email: Optional[str] = None
    google_private_key: Optional[str] = None
    google_credentials_file: Optional[str] = None
    detail_tab_title: str = "booked_hours_per_person"
    summary_tab_title: str = "Summary"

    # Report policy
    batch_size: int = 500
    dry_run: bool = False
    internal_domain_suffixes: Tuple[str, ...] = field(
        default_factory=lambda: DEFAULT_INTERNAL_DOMAINS
    )
    schedule_time: str = "17:00"

    @classmethod
    def from_env(cls) -> "Config":
        """
        Construct a Config object by reading environment variables.

        Environment variables (all optional):
        - MONGO_URI, MONGO_COLLECTION_NAME (database name),
          MONGO_TASKS_COLLECTION, MONGO_CONNECT_ATTEMPTS
        - TASK_PROJECT_FIELD, TASK_PROJECT_NAME_FIELD,
          TASK_ASSIGNEE_FIELD, TASK_HOURS_FIELD
        - GOOGLE_FILE_ID, GOOGLE_SERVICE_ACCOUNT_EMAIL, GOOGLE_PRIVATE_KEY,
          GOOGLE_APPLICATION_CREDENTIALS
        - GOOGLE_TAB_TITLE, GOOGLE_SUMMARY_TAB_TITLE
        - BATCH_SIZE, DRY_RUN (true/false), SCHEDULE_TIME (HH:MM)
        - BOOKED_HOURS_INTERNAL_DOMAINS (comma separated suffixes)
        """
        return cls(
            mongo_uri=os.getenv("MONGO_URI"),
            mongo_db_name=os.getenv("MONGO_COLLECTION_NAME"),
            mongo_collection=os.getenv("MONGO_TASKS_COLLECTION", "tasks"),
            mongo_connect_attempts=max(
                1, _get_env_int("MONGO_CONNECT_ATTEMPTS", default=3)
            ),
            project_field=os.getenv("TASK_PROJECT_FIELD", "project_main_gid"),
            project_name_field=os.getenv(
                "TASK_PROJECT_NAME_FIELD", "project_main_name"
            ),
            assignee_field=os.getenv("TASK_ASSIGNEE_FIELD", "assignee_mail"),
            hours_field=os.getenv("TASK_HOURS_FIELD", "hours_completed_self"),
            google_file_id=os.getenv("GOOGLE_FILE_ID"),
            google_service_account_email=os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL"),
            google_private_key=_unescape_private_key(os.getenv("GOOGLE_PRIVATE_KEY")),
            google_credentials_file=os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
            detail_tab_title=os.getenv("GOOGLE_TAB_TITLE", "booked_hours_per_person"),
            summary_tab_title=os.getenv("GOOGLE_SUMMARY_TAB_TITLE", "Summary"),
            batch_size=max(1, _get_env_int("BATCH_SIZE", default=500)),
            dry_run=_get_env_bool("DRY_RUN", default=False),
            internal_domain_suffixes=_get_env_list(
                "BOOKED_HOURS_INTERNAL_DOMAINS", default=DEFAULT_INTERNAL_DOMAINS
            ),
            schedule_time=os.getenv("SCHEDULE_TIME", "17:00"),
        )

    def validate_for_live_run(self) -> None:
        """
        Raise ValueError listing every setting a non-dry run needs but lacks.
        """
        missing = []
        if not self.mongo_uri:
            missing.append("MONGO_URI")
        if not self.mongo_db_name:
            missing.append("MONGO_COLLECTION_NAME")
        if not self.dry_run:
            if not self.google_file_id:
                missing.append("GOOGLE_FILE_ID")
            has_inline_key = (
                self.google_service_account_email and self.google_private_key
            )
            if not has_inline_key and not self.google_credentials_file:
                missing.append(
                    "GOOGLE_SERVICE_ACCOUNT_EMAIL + GOOGLE_PRIVATE_KEY "
                    "(or GOOGLE_APPLICATION_CREDENTIALS)"
                )
        if missing:
            raise ValueError(
                "Missing configuration: " + ", ".join(missing)
            )
