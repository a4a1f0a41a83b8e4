"""Pydantic models for the trace side of the conversion.

`SpanDescriptor` is the unit handed to the span emitter: it carries exact
trace/span ids so the exporter never generates its own. The report models
summarize what a workflow (and the whole batch) produced and skipped.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "Attribute",
    "SpanDescriptor",
    "SkippedRun",
    "WorkflowReport",
    "BatchReport",
]

# Key/value pair; duplicates are allowed in an attribute list.
Attribute = Tuple[str, str]

StatusCodeName = Literal["UNSET", "OK", "ERROR"]


class SpanDescriptor(BaseModel):
    """One span to emit: a job span or the enclosing run span.

    The run span is the root of its trace (`parent_span_id` is None); job
    spans point at it. `end` is None for a job that is still running.
    """

    model_config = ConfigDict(frozen=True)

    trace_id: bytes = Field(min_length=16, max_length=16)
    span_id: bytes = Field(min_length=8, max_length=8)
    parent_span_id: Optional[bytes] = Field(default=None, min_length=8, max_length=8)
    name: str
    start: datetime
    end: Optional[datetime] = None
    attributes: List[Attribute] = Field(default_factory=list)
    status_message: str = ""
    status_code: StatusCodeName = "UNSET"

    @property
    def is_root(self) -> bool:
        return self.parent_span_id is None


class SkippedRun(BaseModel):
    """A run that contributed no spans, with the reason it was skipped."""

    # None when the run payload carried no usable id.
    run_id: Optional[int] = None
    reason: str


class WorkflowReport(BaseModel):
    """Outcome of processing one workflow."""

    workflow_id: int
    workflow_name: str
    runs_total: int = 0
    runs_processed: int = 0
    spans_emitted: int = 0
    skipped: List[SkippedRun] = Field(default_factory=list)
    # Set when the workflow's run history could not be retrieved at all.
    error: Optional[str] = None

    @property
    def runs_skipped(self) -> int:
        return len(self.skipped)

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchReport(BaseModel):
    """Aggregate of every workflow report for one repository."""

    repository: str
    workflows: List[WorkflowReport] = Field(default_factory=list)

    @property
    def runs_processed(self) -> int:
        return sum(w.runs_processed for w in self.workflows)

    @property
    def runs_skipped(self) -> int:
        return sum(w.runs_skipped for w in self.workflows)

    @property
    def spans_emitted(self) -> int:
        return sum(w.spans_emitted for w in self.workflows)

    @property
    def failed_workflows(self) -> List[WorkflowReport]:
        return [w for w in self.workflows if not w.ok]
