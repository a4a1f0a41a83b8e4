"""Flatten a job or run record into string span attributes.

Each top-level field becomes one `(key, value)` pair keyed by the field name.
Rendering rules:

    None                   -> no attribute
    str                    -> unchanged
    bool                   -> "true" / "false"
    int / float            -> str(value)
    datetime / date        -> ISO-8601
    list/tuple of scalars  -> comma-joined rendering of each element
    anything nested        -> compact JSON of the whole value

Known limitation:
    Flattening is NOT recursive. A nested object (for example a run's
    `head_commit`, or a job's `steps`) becomes a single JSON string attribute
    instead of `head_commit.id`, `head_commit.message`, ... keys. Consumers
    rely on this flat shape, so keep it.
"""
from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, List, Mapping

from pydantic import BaseModel

from ..errors import UnsupportedRecordShape
from ..models.trace import Attribute

__all__ = ["flatten", "render_value"]

_SCALARS = (str, bool, int, float, datetime, date)


def _render_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def render_value(value: Any) -> str | None:
    """Render one field value; None means the field contributes no attribute."""
    if value is None:
        return None
    if isinstance(value, _SCALARS):
        return _render_scalar(value)
    if isinstance(value, (list, tuple)) and all(
        v is None or isinstance(v, _SCALARS) for v in value
    ):
        return ",".join(_render_scalar(v) for v in value if v is not None)
    return json.dumps(value, separators=(",", ":"), default=_json_default)


def flatten(record: Any) -> List[Attribute]:
    """Convert a single-level record into a list of string attributes.

    Args:
        record: A mapping (or pydantic model) of field name to value.

    Returns:
        Attributes in the record's field order.

    Raises:
        UnsupportedRecordShape: If `record` is not record-shaped (a bare
            scalar or a list at the top level).
    """
    if isinstance(record, BaseModel):
        record = record.model_dump()
    if not isinstance(record, Mapping):
        raise UnsupportedRecordShape(record)
    attributes: List[Attribute] = []
    for key, value in record.items():
        rendered = render_value(value)
        if rendered is not None:
            attributes.append((str(key), rendered))
    return attributes
