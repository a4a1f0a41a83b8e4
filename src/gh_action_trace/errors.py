"""Error taxonomy for the run-to-trace conversion.

Every error raised by the conversion engine derives from `GhActionTraceError`
so callers can tell conversion failures apart from programming errors.

Propagation policy:
    - `SourceUnavailable` while listing workflows is fatal to the invocation.
    - `SourceUnavailable` while paging runs is fatal to that workflow only and
      is recorded in its `WorkflowReport.error`.
    - `JobFetchFailed` skips a single run; the workflow continues.
    - `InvalidIdentifier`, `UnsupportedRecordShape` and `InconsistentRecord`
      describe malformed upstream data and skip the affected job or run.
"""
from __future__ import annotations

from typing import Any, Optional

__all__ = [
    "GhActionTraceError",
    "InvalidIdentifier",
    "UnsupportedRecordShape",
    "InconsistentRecord",
    "SourceUnavailable",
    "JobFetchFailed",
]


class GhActionTraceError(Exception):
    """Base class for all conversion errors."""


class InvalidIdentifier(GhActionTraceError, ValueError):
    """A CI identifier cannot be encoded as a trace or span id."""

    def __init__(self, value: Any, reason: str = "reserved all-zero identifier") -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot encode identifier {value!r}: {reason}")


class UnsupportedRecordShape(GhActionTraceError, TypeError):
    """Attribute flattening was given something other than a key/value record."""

    def __init__(self, received: Any) -> None:
        self.received_type = type(received).__name__
        super().__init__(
            f"Expected a key/value record, got {self.received_type}"
        )


class InconsistentRecord(GhActionTraceError):
    """A fetched record violates its own timestamp invariants."""

    def __init__(self, entity: str, entity_id: Any, reason: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"{entity} {entity_id}: {reason}")


class SourceUnavailable(GhActionTraceError):
    """An upstream list/fetch call failed after the source gave up retrying."""

    def __init__(self, resource: str, cause: Optional[BaseException] = None) -> None:
        self.resource = resource
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Source unavailable for {resource}{detail}")


class JobFetchFailed(GhActionTraceError):
    """Listing the jobs of one run failed; the run is skipped."""

    def __init__(self, run_id: int, cause: Optional[BaseException] = None) -> None:
        self.run_id = run_id
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed retrieving jobs for run {run_id}{detail}")
