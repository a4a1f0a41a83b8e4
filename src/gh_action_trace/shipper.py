"""Shipper: converts span descriptors to OpenTelemetry spans and exports them.

This module is the "L" (Load) in the pipeline. The ids of a CI trace are
fixed by the run and job ids, so spans are not started through a tracer
(which would generate random span ids). Each `SpanDescriptor` is turned into
an SDK `ReadableSpan` carrying the exact trace, span and parent ids, and is
handed directly to a span processor that batches and exports it over
OTLP/HTTP.

Key responsibilities:
- One-time construction of the OTLP exporter and batch processor from settings.
- Translating descriptors into ReadableSpans (timestamps, status, attributes).
- Dry-run mode: spans are logged and counted but never exported.
- Flushing and shutting down the exporter at the end of the invocation.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Optional

from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.util.instrumentation import InstrumentationScope
from opentelemetry.trace import SpanContext, SpanKind, Status, StatusCode, TraceFlags

from . import __version__
from .config import Settings
from .mapping.id_utils import span_id_int, to_hex, trace_id_int
from .models.trace import SpanDescriptor

logger = logging.getLogger(__name__)

SCOPE_NAME = "gh-action-trace"
STATUS_MESSAGE_ATTRIBUTE = "status.message"

__all__ = ["SpanShipper", "build_span_shipper", "to_readable_span"]


def _to_ns(value: datetime) -> int:
    # Integer arithmetic keeps sub-second precision exact.
    return int(value.timestamp()) * 1_000_000_000 + value.microsecond * 1_000


def _status(span: SpanDescriptor) -> Status:
    if span.status_code == "ERROR":
        return Status(StatusCode.ERROR, span.status_message or None)
    if span.status_code == "OK":
        return Status(StatusCode.OK)
    return Status(StatusCode.UNSET)


def _context(trace_id: bytes, span_id: bytes) -> SpanContext:
    return SpanContext(
        trace_id=trace_id_int(trace_id),
        span_id=span_id_int(span_id),
        is_remote=False,
        trace_flags=TraceFlags(TraceFlags.SAMPLED),
    )


def to_readable_span(span: SpanDescriptor, resource: Resource) -> ReadableSpan:
    """Build the SDK span for one descriptor.

    Attributes become a mapping; when a key repeats, the last value wins. The
    status message is carried as the ERROR description, and as the
    `status.message` attribute otherwise (OpenTelemetry drops descriptions
    on non-error statuses).
    """
    attributes: Dict[str, str] = dict(span.attributes)
    if span.status_message and span.status_code != "ERROR":
        attributes[STATUS_MESSAGE_ATTRIBUTE] = span.status_message
    parent = (
        _context(span.trace_id, span.parent_span_id)
        if span.parent_span_id is not None
        else None
    )
    return ReadableSpan(
        name=span.name,
        context=_context(span.trace_id, span.span_id),
        parent=parent,
        resource=resource,
        attributes=attributes,
        kind=SpanKind.INTERNAL,
        status=_status(span),
        start_time=_to_ns(span.start),
        end_time=_to_ns(span.end) if span.end is not None else None,
        instrumentation_scope=InstrumentationScope(SCOPE_NAME, __version__),
    )


class SpanShipper:
    """`SpanEmitter` backed by an OpenTelemetry span processor.

    With `processor=None` the shipper runs in dry-run mode: every span is
    logged at debug level and counted, nothing leaves the process.
    """

    def __init__(self, processor: Optional[SpanProcessor], resource: Resource) -> None:
        self._processor = processor
        self._resource = resource
        self._emitted = 0

    @property
    def dry_run(self) -> bool:
        return self._processor is None

    @property
    def spans_emitted(self) -> int:
        return self._emitted

    def emit(self, span: SpanDescriptor) -> None:
        self._emitted += 1
        if self._processor is None:
            logger.debug(
                "Dry-run span: trace_id=%s span_id=%s name=%s",
                to_hex(span.trace_id),
                to_hex(span.span_id),
                span.name,
            )
            return
        self._processor.on_end(to_readable_span(span, self._resource))

    def force_flush(self) -> bool:
        if self._processor is None:
            return True
        return self._processor.force_flush()

    def shutdown(self) -> None:
        """Flush buffered spans and shut the exporter down."""
        if self._processor is None:
            logger.info("Dry-run export: spans=%d", self._emitted)
            return
        try:
            self._processor.force_flush()
        finally:
            self._processor.shutdown()
        logger.info("Exporter shut down after %d span(s)", self._emitted)


def build_span_shipper(
    settings: Settings, service_name: str, *, dry_run: bool = False
) -> SpanShipper:
    """Create the OTLP/HTTP exporter and batch processor described by settings.

    Args:
        settings: Exporter endpoint, timeout and batching parameters.
        service_name: `service.name` resource attribute; the CLI passes
            `owner/repo` unless OTEL_SERVICE_NAME overrides it.
        dry_run: Skip exporter creation and only log spans.
    """
    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
            "telemetry.sdk.language": "python",
        }
    )
    if dry_run:
        return SpanShipper(None, resource)
    exporter = OTLPSpanExporter(
        endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
        timeout=settings.OTEL_EXPORTER_OTLP_TIMEOUT,
    )
    processor = BatchSpanProcessor(
        exporter,
        max_queue_size=settings.OTEL_MAX_QUEUE_SIZE,
        max_export_batch_size=settings.OTEL_MAX_EXPORT_BATCH_SIZE,
        schedule_delay_millis=settings.OTEL_SCHEDULED_DELAY_MILLIS,
    )
    logger.info("Initialized OTLP exporter for endpoint %s", settings.OTEL_EXPORTER_OTLP_ENDPOINT)
    return SpanShipper(processor, resource)
