"""Pydantic models for GitHub Actions metadata.

These models give a typed, validated view over the JSON returned by the
GitHub REST API for workflows, workflow runs and jobs. The raw payload of runs
and jobs is kept in `metadata` because span attributes are flattened from the
full record, not only from the typed fields.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..mapping.time_utils import parse_timestamp

__all__ = [
    "RepositoryRef",
    "WorkflowDescriptor",
    "RunSummary",
    "JobRecord",
    "MalformedRecord",
]


class RepositoryRef(BaseModel):
    """Owner/name pair identifying a GitHub repository."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(min_length=1)
    name: str = Field(min_length=1)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> "RepositoryRef":
        """Parse an ``owner/name`` string."""
        owner, sep, name = value.strip().partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError(f"Repository must be given as owner/name, got {value!r}")
        return cls(owner=owner, name=name)

    def __str__(self) -> str:
        return self.full_name


class WorkflowDescriptor(BaseModel):
    """A named automation pipeline (one `.github/workflows/*.yml` file)."""

    id: int
    name: str
    path: Optional[str] = None
    state: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "WorkflowDescriptor":
        return cls(
            id=payload["id"],
            name=payload.get("name") or str(payload["id"]),
            path=payload.get("path"),
            state=payload.get("state"),
        )


class RunSummary(BaseModel):
    """One execution of a workflow.

    Completion time is not tracked at the run level; it is derived from the
    jobs by `effective_end`.
    """

    id: int
    name: str
    workflow_id: int
    created_at: datetime
    status: str
    conclusion: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("created_at", mode="before")
    @classmethod
    def ensure_utc(cls, value: Any) -> Any:
        return parse_timestamp(value)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "RunSummary":
        return cls(
            id=payload["id"],
            name=payload.get("name") or payload.get("display_title") or f"run {payload['id']}",
            workflow_id=payload["workflow_id"],
            created_at=payload["created_at"],
            status=payload.get("status") or "unknown",
            conclusion=payload.get("conclusion"),
            metadata=dict(payload),
        )


class JobRecord(BaseModel):
    """One unit of work inside a run.

    A job without `completed_at` is still running; a job without `started_at`
    has not been dispatched yet. The ordering invariant between the two
    timestamps is checked by `job_state`, so a single malformed job can be
    skipped without rejecting the page it arrived on.
    """

    id: int
    run_id: int
    name: str
    status: str
    conclusion: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("started_at", "completed_at", mode="before")
    @classmethod
    def ensure_utc(cls, value: Any) -> Any:
        return parse_timestamp(value)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "JobRecord":
        return cls(
            id=payload["id"],
            run_id=payload["run_id"],
            name=payload.get("name") or f"job {payload['id']}",
            status=payload.get("status") or "unknown",
            conclusion=payload.get("conclusion"),
            started_at=payload.get("started_at"),
            completed_at=payload.get("completed_at"),
            metadata=dict(payload),
        )


class MalformedRecord(BaseModel):
    """Placeholder for a list item that failed validation.

    It keeps its position in the page so page lengths (and therefore the
    short-page end-of-history check) are unaffected by bad items.
    """

    entity: str
    id: Optional[int] = None
    reason: str

    @classmethod
    def from_payload(cls, entity: str, payload: Any, exc: Exception) -> "MalformedRecord":
        raw_id = payload.get("id") if isinstance(payload, Mapping) else None
        if isinstance(raw_id, bool) or not isinstance(raw_id, int):
            raw_id = None
        if isinstance(exc, ValidationError):
            detail = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in exc.errors()
            )
        else:
            detail = str(exc)
        reason = f"{type(exc).__name__}: {detail}"
        return cls(entity=entity, id=raw_id, reason=reason)
