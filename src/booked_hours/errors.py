"""
Error taxonomy for a report run.

Every error a run can end with derives from ReportError, so the run
boundary can tell expected failures from defects.
"""

from __future__ import annotations


class ReportError(Exception):
    """Base class for all report run failures."""


class ConnectivityError(ReportError):
    """The upstream database stayed unreachable after all connection attempts."""


class NoDataError(ReportError):
    """The upstream source returned no task records."""


class SchemaInconsistencyError(ReportError):
    """A row could not be rendered against the computed schema (a defect)."""


class RemoteWriteError(ReportError):
    """A step of the clear/resize/header/append protocol failed for one sheet."""

    def __init__(self, resource: str, step: str, message: str = "") -> None:
        self.resource = resource
        self.step = step
        detail = f": {message}" if message else ""
        super().__init__(f"[{resource}] {step} failed{detail}")
